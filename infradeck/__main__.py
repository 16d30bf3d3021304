"""Module entrypoint for ``python -m infradeck``."""

from .cli import main


if __name__ == "__main__":
    main()
