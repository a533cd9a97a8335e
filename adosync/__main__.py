"""Entry point for running adosync as a module.

This allows running the application with:
    python -m adosync [COMMAND] [OPTIONS]
"""

from adosync.cli import app

if __name__ == "__main__":
    app()
