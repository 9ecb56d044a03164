"""File-based persistence for the Spotify credential."""

from __future__ import annotations

import logging
import os
import stat
from pathlib import Path

from pydantic import ValidationError

from ezspotify.models.auth import Credential
from ezspotify.utils.errors import (
    CredentialCorruptError,
    CredentialNotFoundError,
    CredentialStoreError,
)

logger = logging.getLogger(__name__)

_OWNER_ONLY = stat.S_IRUSR | stat.S_IWUSR


class CredentialStore:
    """Stores a single credential as JSON at a fixed path.

    The file is created owner-only (0600) and re-chmodded on every save.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def save(self, credential: Credential) -> None:
        """Write the credential, replacing any previous one."""
        try:
            if self._path.parent != Path("."):
                self._path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(self._path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, _OWNER_ONLY)
            with os.fdopen(fd, "w") as f:
                f.write(credential.model_dump_json(indent=2))
            os.chmod(self._path, _OWNER_ONLY)
        except OSError as e:
            raise CredentialStoreError(f"Could not save credential to {self._path}: {e}") from e
        logger.debug("Saved credential to %s", self._path)

    def load(self) -> Credential:
        """Read the stored credential.

        Raises:
            CredentialNotFoundError: No file at the configured path.
            CredentialCorruptError: The file could not be decoded.
        """
        try:
            raw = self._path.read_text()
        except FileNotFoundError as e:
            raise CredentialNotFoundError(f"No credential stored at {self._path}") from e
        except UnicodeDecodeError as e:
            raise CredentialCorruptError(f"Credential file {self._path} is not text") from e
        except OSError as e:
            raise CredentialStoreError(f"Could not read {self._path}: {e}") from e

        try:
            return Credential.model_validate_json(raw)
        except ValidationError as e:
            raise CredentialCorruptError(f"Credential file {self._path} is corrupt: {e}") from e

    def delete(self) -> bool:
        """Remove the stored credential. Returns True if a file was deleted."""
        if self._path.exists():
            self._path.unlink()
            logger.info("Deleted credential at %s", self._path)
            return True
        return False
