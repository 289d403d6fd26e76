"""
Package entry point.

Allows running the application via:

    python -m feedbackdash

This simply forwards execution to feedbackdash.cli.main().
"""

from feedbackdash.cli import main

if __name__ == "__main__":
    main()
