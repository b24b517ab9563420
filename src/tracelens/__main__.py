"""Allow running tracelens as a module: python -m tracelens."""

from tracelens.cli.app import main

if __name__ == "__main__":
    main()
