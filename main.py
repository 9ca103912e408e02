"""Entry point de desarrollo de keystone-provision (sin `pip install -e .`).

Permite lanzar la CLI desde un checkout:
- `python -m main plan --json`
- `python -m main apply --dry-run -i @ssh/keystone1`

Añade `src/` al path porque `cli`, `core` y `adapters` viven ahí.
"""

from __future__ import annotations

import sys
from pathlib import Path


def main() -> None:
    project_root = Path(__file__).resolve().parent
    src = project_root / "src"
    if str(src) not in sys.path:
        sys.path.insert(0, str(src))

    from cli.main import run  # noqa: PLC0415

    run()


if __name__ == "__main__":
    main()
