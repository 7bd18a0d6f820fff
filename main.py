import subprocess
import os
import threading
import time
import sys
import logging
import webbrowser

logger = logging.getLogger(__name__)

def run_backend():

    try:
        from backend.api import start_server
        from backend.core.config import settings
        start_server(host=settings.API_HOST, port=settings.API_PORT)
    except Exception as e:
        logger.error(f"Backend stopped: {e}")

def run_frontend():
    root = os.path.dirname(os.path.abspath(__file__))
    os.environ["STUDEX_ROOT"] = root
    cmd = [sys.executable, "-m", "streamlit", "run", os.path.join(root, "frontend", "app.py"),
           "--server.port=8501", "--server.address=127.0.0.1"]
    return subprocess.Popen(cmd)

def main():
    # Start the backend in a separate thread
    backend_thread = threading.Thread(target=run_backend)
    backend_thread.daemon = True
    backend_thread.start()

    time.sleep(2)

    frontend = run_frontend()

    webbrowser.open("http://localhost:8501")

    try:
        # Keep the main thread alive
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        frontend.terminate()
        sys.exit(0)

if __name__ == "__main__":
    main()
