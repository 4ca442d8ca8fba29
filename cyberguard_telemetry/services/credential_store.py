"""Bearer credential holder shared by every live request."""

import json
import logging
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class Credential:
    """Opaque bearer token and the time it was issued."""

    token: str
    issued_at: float = field(default_factory=time.time)
    token_type: str = "bearer"
    user: Optional[Dict[str, Any]] = None

    def authorization_header(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


class CredentialStore:
    """
    Single-writer, many-reader store for the current bearer credential.

    Readers (every live request) take a snapshot under the lock; only the
    login/logout flow and token-invalidation handling mutate it. When a
    token file is configured the credential is persisted there, overwritten
    on each login and removed on logout.
    """

    def __init__(self, token_file: Optional[str] = None, logger: logging.Logger = None):
        """
        Initialize credential store.

        Args:
            token_file: Optional path of the JSON file holding the token
            logger: Optional logger instance
        """
        self.token_file = Path(token_file) if token_file else None
        self.logger = (logger or logging.getLogger(__name__)).getChild(self.__class__.__name__)
        self._lock = threading.RLock()
        self._credential: Optional[Credential] = None

        if self.token_file is not None:
            self._credential = self._load()

    def get(self) -> Optional[Credential]:
        """Return the current credential snapshot, or None when logged out."""
        with self._lock:
            return self._credential

    def set(self, token: str, token_type: str = "bearer",
            user: Optional[Dict[str, Any]] = None) -> Credential:
        """Replace the current credential and persist it."""
        if not token:
            raise ValueError("token must be a non-empty string")

        credential = Credential(token=token, token_type=token_type, user=user)
        with self._lock:
            self._credential = credential
            self._save(credential)

        self.logger.info("Credential stored")
        return credential

    def clear(self) -> None:
        """Drop the current credential and remove the persisted copy."""
        with self._lock:
            had_credential = self._credential is not None
            self._credential = None
            self._remove()

        if had_credential:
            self.logger.info("Credential cleared")

    def is_authenticated(self) -> bool:
        return self.get() is not None

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------

    def _load(self) -> Optional[Credential]:
        """Restore a persisted credential, ignoring unreadable files."""
        if not self.token_file.exists():
            return None

        try:
            with open(self.token_file, "r") as f:
                state = json.load(f)
            token = state.get("access_token")
            if not token:
                return None
            self.logger.info(f"Restored credential from {self.token_file}")
            return Credential(
                token=token,
                issued_at=float(state.get("issued_at", time.time())),
                token_type=state.get("token_type", "bearer"),
                user=state.get("user"),
            )
        except (json.JSONDecodeError, AttributeError, TypeError, ValueError, OSError) as e:
            self.logger.warning(f"Failed to load credential: {e}, starting logged out")
            return None

    def _save(self, credential: Credential) -> None:
        if self.token_file is None:
            return

        try:
            self.token_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.token_file, "w") as f:
                json.dump({
                    "access_token": credential.token,
                    "token_type": credential.token_type,
                    "issued_at": credential.issued_at,
                    "user": credential.user,
                }, f, indent=2)
        except OSError as e:
            self.logger.error(f"Failed to persist credential: {e}")

    def _remove(self) -> None:
        if self.token_file is None:
            return

        try:
            self.token_file.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            self.logger.error(f"Failed to remove persisted credential: {e}")
