"""Top-level package for canvas_cli."""
from __future__ import annotations

__version__ = "0.1.0"
__all__ = ["CanvasClient", "CredentialStore"]


def __getattr__(name):  # type: ignore[override]
    if name == "CanvasClient":
        from .client import CanvasClient

        return CanvasClient
    if name == "CredentialStore":
        from .credentials import CredentialStore

        return CredentialStore
    raise AttributeError(name)
