"""Module entrypoint for ``python -m autoremedy``."""

from __future__ import annotations

from autoremedy.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
