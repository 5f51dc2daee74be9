"""Package entry point.

Preferred invocation is via the installed console script:

    migrate-data --lambda upload --bucket PostsBucket ...

For convenience we also support:

    python -m data_migrator --lambda upload --bucket PostsBucket ...
"""

from __future__ import annotations

from .cli import app


def main() -> None:
    """Entry point used by `python -m data_migrator`."""

    app()


if __name__ == "__main__":
    main()
