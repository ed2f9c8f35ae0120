"""Allow running as ``python -m hubpack``."""

from hubpack.cli.app import main

if __name__ == "__main__":
    main()
