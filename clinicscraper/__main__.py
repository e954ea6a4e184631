"""Main entry point when executing clinicscraper as a package.

This allows running the package using python -m clinicscraper.
"""

from clinicscraper.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()
