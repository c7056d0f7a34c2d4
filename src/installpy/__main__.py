"""installpy CLI bootstrap."""

from __future__ import annotations

from installpy.cli import app

if __name__ == "__main__":
    app()
