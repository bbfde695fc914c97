"""模块入口，使其可通过 ``python -m vpsaccess`` 直接运行。Module entry point for ``python -m vpsaccess``."""

from __future__ import annotations

import sys

from .main import main


def run() -> None:
    """Dispatch to :func:`vpsaccess.main.main`."""

    sys.exit(main())


if __name__ == "__main__":  # pragma: no cover - module execution hook
    run()
