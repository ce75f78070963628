"""
Entry point for running the phpforge CLI as a module.

Usage: python -m phpforge.cli [command] [options]
"""

from .parser import main

if __name__ == "__main__":
    main()
