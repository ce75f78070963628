"""
Entry point for running phpforge as a module.

Usage: python -m phpforge [command] [options]
"""

from phpforge.cli.parser import main

if __name__ == "__main__":
    main()
