"""canvas_cli.credentials

Keeps one Canvas domain + API token on disk between sessions.

The token is obscured with Fernet under a key derived from a fixed
application constant. Every installation shares that key, so this only keeps
the token out of plain sight (a copied or shared file, a stray ``cat``). Anyone
with the file and this source can recover the token; the protection that
matters is the owner-only mode on the directory and the file.
"""
from __future__ import annotations

import base64
import hashlib
import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

from cryptography.fernet import Fernet, InvalidToken
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import CredentialDecodeError

__all__ = ["Credential", "CredentialStore", "DEFAULT_CONFIG_DIR", "CREDENTIALS_FILE"]

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path.home() / ".canvas-cli"
CREDENTIALS_FILE = "credentials.json"

_APP_KEY = b"canvas-cli-secure-key-2024"
_fernet = Fernet(base64.urlsafe_b64encode(hashlib.sha256(_APP_KEY).digest()))


class Credential(BaseModel):
    """A domain/token pair and when it was saved."""

    model_config = ConfigDict(populate_by_name=True)

    token: str = Field(..., min_length=1)
    domain: str = Field(..., min_length=1)
    saved_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        alias="savedAt",
    )


def _obscure(token: str) -> str:
    return _fernet.encrypt(token.encode("utf-8")).decode("ascii")


def _reveal(blob: str) -> str:
    try:
        return _fernet.decrypt(blob.encode("ascii")).decode("utf-8")
    except (InvalidToken, UnicodeError, AttributeError) as exc:
        raise CredentialDecodeError(cause=exc) from exc


class CredentialStore:
    """Reads and writes the single credential file under *config_dir*."""

    def __init__(self, config_dir: Union[str, Path, None] = None):
        self.config_dir = Path(config_dir).expanduser() if config_dir else DEFAULT_CONFIG_DIR
        self.path = self.config_dir / CREDENTIALS_FILE

    def __repr__(self) -> str:
        return f"CredentialStore(path={str(self.path)!r})"

    def _ensure_dir(self) -> None:
        if not self.config_dir.exists():
            self.config_dir.mkdir(mode=0o700, parents=True, exist_ok=True)

    def store(self, token: str, domain: str) -> Credential:
        """Save *token* and *domain*, replacing whatever was stored before."""
        credential = Credential(token=token, domain=domain)
        self._ensure_dir()
        record = {
            "token": _obscure(credential.token),
            "domain": credential.domain,
            "savedAt": credential.saved_at.isoformat(),
        }
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(record, f, indent=2)
        # O_CREAT's mode is ignored for an existing file
        os.chmod(self.path, 0o600)
        logger.debug("Saved credential for %s to %s", domain, self.path)
        return credential

    def load(self) -> Optional[Credential]:
        """Return the stored credential, or None when there is none usable."""
        if not self.path.exists():
            return None
        try:
            return self._decode(self.path.read_bytes())
        except (OSError, CredentialDecodeError) as exc:
            logger.debug("Ignoring unreadable credential file %s: %s", self.path, exc)
            return None

    @staticmethod
    def _decode(raw: bytes) -> Credential:
        try:
            record = json.loads(raw.decode("utf-8"))
            return Credential(
                token=_reveal(record["token"]),
                domain=record["domain"],
                savedAt=record.get("savedAt") or datetime.now(timezone.utc),
            )
        except CredentialDecodeError:
            raise
        except (ValueError, KeyError, TypeError, ValidationError) as exc:
            raise CredentialDecodeError(cause=exc) from exc

    def clear(self) -> None:
        """Remove the stored credential; a missing file is fine."""
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass

    def exists(self) -> bool:
        return self.path.exists()
