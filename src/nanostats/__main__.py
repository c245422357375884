"""Allow running nanostats with ``python -m nanostats``."""

from nanostats.cli import main

if __name__ == "__main__":
    main()
