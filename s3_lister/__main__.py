"""Module entry point for the bucket lister."""
from .cli import main


if __name__ == "__main__":
    raise SystemExit(main())
