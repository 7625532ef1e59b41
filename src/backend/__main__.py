from __future__ import annotations

import sys
from typing import TYPE_CHECKING

from backend.cli import backend_group

if TYPE_CHECKING:
    from typing import NoReturn

__all__ = ("run_cli",)


def run_cli() -> NoReturn:
    """Application Entrypoint."""
    sys.exit(backend_group())


if __name__ == "__main__":
    run_cli()
