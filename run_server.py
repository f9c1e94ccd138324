import os
import sys
import traceback

# Ensure project root is on sys.path so `import filmwise` resolves consistently
ROOT = os.path.dirname(os.path.abspath(__file__))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
os.chdir(ROOT)  # relative DATABASE_PATH / upload folder resolve to project root

try:
    from filmwise import create_app
except Exception:
    print("[run_server] Failed to import filmwise:create_app")
    traceback.print_exc()
    raise

app = create_app()

if __name__ == "__main__":
    host = app.config["APP_HOST"]
    port = int(app.config["APP_PORT"])
    print(f"[run_server] Starting filmwise on {host}:{port}")
    app.run(host=host, port=port, debug=False, use_reloader=False)
