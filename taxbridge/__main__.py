"""Entry point for running taxbridge as a module."""

from taxbridge.cli.commands import app

if __name__ == "__main__":
    app()
