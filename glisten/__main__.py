"""
Entry point for ``python -m glisten``.
"""

from .cli.app import app

if __name__ == "__main__":
    app()
