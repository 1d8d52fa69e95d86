"""Allow running with ``python -m sleep_log``."""

from sleep_log.cli.main import app

if __name__ == "__main__":
    app()
