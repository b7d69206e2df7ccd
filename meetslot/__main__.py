"""
Entry point for ``python -m meetslot``.
"""

from .cli.app import app

if __name__ == "__main__":
    app()
