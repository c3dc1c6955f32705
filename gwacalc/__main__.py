"""
Package entry point.

Allows running the application via:

    python -m gwacalc

This simply forwards execution to gwacalc.cli.main().
"""

from gwacalc.cli import main

if __name__ == "__main__":
    main()
