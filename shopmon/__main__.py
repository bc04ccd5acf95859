"""Main entry point when executing shopmon as a package.

This allows running the package using python -m shopmon.
"""

from shopmon.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()
