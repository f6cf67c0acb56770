"""Main entry point when executing linearkit as a package.

This allows running the package using python -m linearkit.
"""

from linearkit.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()
