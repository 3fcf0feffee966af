"""
Entry point for running the review engine CLI as a module.

Usage:
    python -m src.srs study
    python -m src.srs stats
    python -m src.srs --help
"""
from .cli import main

if __name__ == "__main__":
    main()
