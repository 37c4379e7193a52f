"""
Quick start script for local development.
Installs the project in editable mode and starts the API server.
"""
import os
import subprocess
import sys


def main():
    """Installs dependencies and starts the server."""
    print("DebtPilot - Initialization\n")

    print("Installing dependencies...")
    try:
        subprocess.run(
            [sys.executable, "-m", "pip", "install", "-e", "."],
            check=True
        )
        print("Dependencies installed successfully!\n")
    except subprocess.CalledProcessError:
        print("Error installing dependencies. Attempting to continue...\n")

    port = os.environ.get("PORT", "8000")
    print(f"Starting FastAPI server on port {port}...")
    print(f"Documentation: http://localhost:{port}/docs")
    print(f"Health check:  http://localhost:{port}/health\n")

    try:
        subprocess.run(
            [sys.executable, "-m", "uvicorn", "app.main:app", "--reload", "--host", "0.0.0.0", "--port", port],
            check=True
        )
    except KeyboardInterrupt:
        print("\n\nServer stopped. Goodbye!")
    except subprocess.CalledProcessError as e:
        print(f"\nError starting server: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
