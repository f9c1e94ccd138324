#!/usr/bin/env python3
"""
Standalone runner for the image janitor.
Removes uploads that were never attached to a movie, either once or on a schedule.
"""
from __future__ import annotations

import argparse
import signal
import sys
import time
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from filmwise import create_app
from filmwise.janitor import ImageJanitor


def signal_handler(signum, frame):
    """Handle shutdown signals gracefully"""
    print("\n\nReceived shutdown signal. Stopping image janitor...")
    sys.exit(0)


def main():
    parser = argparse.ArgumentParser(
        description="filmwise unused image janitor",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run the janitor continuously with settings from filmwise_config.yaml
  python run_image_janitor.py

  # Purge once and exit
  python run_image_janitor.py --run-once

  # Use a custom configuration file
  python run_image_janitor.py --config my_config.yaml
        """,
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to configuration file (default: FILMWISE_CONFIG or filmwise_config.yaml)",
    )
    parser.add_argument(
        "--run-once",
        action="store_true",
        help="Purge unused images once and exit",
    )
    parser.add_argument(
        "--status",
        action="store_true",
        help="Show janitor settings and status, then exit",
    )
    args = parser.parse_args()

    if args.config and not Path(args.config).exists():
        print(f"Error: Configuration file '{args.config}' not found")
        return 1

    overrides = {"FILMWISE_CONFIG": args.config} if args.config else None
    app = create_app(overrides)
    janitor = ImageJanitor(app, app.config.get("JANITOR"))

    if args.status:
        status = janitor.get_status()
        print("\nImage Janitor Status:")
        print(f"  Running: {status['running']}")
        print(f"  Interval: every {status['interval_hours']} hours")
        print(f"  Max age: {status['max_age_hours']} hours")
        print(f"  Last run: {status['last_run_time'] or 'Never'}")
        print(f"  Last status: {status['last_run_status']}")
        return 0

    if args.run_once:
        print("Purging unused images once...\n")
        removed = janitor.run_job()
        print(f"\nRemoved {removed} image(s). Exiting.")
        return 0

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        janitor.start()
        print("\n" + "=" * 80)
        print("filmwise image janitor is now running")
        print("=" * 80)
        status = janitor.get_status()
        print(f"Next scheduled run: {status['next_run_time']}")
        print("\nPress Ctrl+C to stop the janitor")
        print("=" * 80 + "\n")
        while True:
            time.sleep(60)
    except (KeyboardInterrupt, SystemExit):
        print("\nShutting down image janitor...")
        janitor.stop()
        return 0


if __name__ == "__main__":
    sys.exit(main())
