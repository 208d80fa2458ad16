from __future__ import annotations

import json
import os
import tempfile
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from .errors import StorageError


@dataclass(frozen=True)
class Credentials:
    refresh_token: str
    access_token: str | None = None
    expires_at: int | None = None


class CredentialStore:
    """JSON file holding the current token pair, rewritten whole on every save."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load(self) -> Credentials | None:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageError(f"Unable to read credentials from {self.path}: {exc}") from exc

        if not text.strip():
            return None
        try:
            payload: Any = json.loads(text)
        except json.JSONDecodeError as exc:
            raise StorageError(f"Credential file {self.path} is not valid JSON") from exc
        return _credentials_from_payload(payload, self.path)

    def save(self, credentials: Credentials) -> None:
        payload = {key: value for key, value in asdict(credentials).items() if value is not None}
        directory = self.path.parent
        tmp_name: str | None = None
        try:
            directory.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                mode="w",
                encoding="utf-8",
                dir=directory,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                delete=False,
            ) as tmp:
                tmp_name = tmp.name
                json.dump(payload, tmp, indent=2, sort_keys=True)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self.path)
        except OSError as exc:
            if tmp_name:
                Path(tmp_name).unlink(missing_ok=True)
            raise StorageError(f"Unable to write credentials to {self.path}: {exc}") from exc


def _credentials_from_payload(payload: Any, path: Path) -> Credentials:
    if not isinstance(payload, dict):
        raise StorageError(f"Credential file {path} must hold a JSON object")
    refresh_token = payload.get("refresh_token")
    if not isinstance(refresh_token, str) or not refresh_token:
        raise StorageError(f"Credential file {path} has no refresh_token")

    access_token = payload.get("access_token")
    expires_at = payload.get("expires_at")
    return Credentials(
        refresh_token=refresh_token,
        access_token=access_token if isinstance(access_token, str) and access_token else None,
        expires_at=int(expires_at) if isinstance(expires_at, (int, float)) else None,
    )
