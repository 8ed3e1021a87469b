"""
Convenience entry point for running salonbook as a module.

Usage: python -m salonbook [command] [options]
"""

from .cli.app import app

if __name__ == "__main__":
    app()
