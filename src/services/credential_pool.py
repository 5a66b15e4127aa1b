"""Pool of cookie-file credentials for the extraction engine."""

import logging
import threading
from pathlib import Path
from typing import List

from models.media import Credential

logger = logging.getLogger(__name__)

COOKIE_FILE_PATTERN = "*.txt"


class CredentialPool:
    """Directory-backed pool of yt-dlp cookie files.

    Credentials are enumerated in lexical file-name order and re-read from
    disk on every ``list()`` so files dropped into the directory become
    available without a restart. ``invalidate`` deletes the backing file and
    is safe to call concurrently for the same id.
    """

    def __init__(self, cookies_dir: str | Path, pattern: str = COOKIE_FILE_PATTERN):
        self.cookies_dir = Path(cookies_dir)
        self.pattern = pattern
        self._invalidated: set[str] = set()
        self._lock = threading.Lock()

    def list(self) -> List[Credential]:
        """Return valid credentials in stable enumeration order."""
        if not self.cookies_dir.is_dir():
            return []

        with self._lock:
            invalidated = set(self._invalidated)

        return [
            Credential(id=path.name, path=path)
            for path in sorted(self.cookies_dir.glob(self.pattern))
            if path.is_file() and path.name not in invalidated
        ]

    def is_valid(self, credential_id: str) -> bool:
        """True if the credential has not been invalidated and still exists."""
        with self._lock:
            if credential_id in self._invalidated:
                return False
        return (self.cookies_dir / credential_id).is_file()

    def invalidate(self, credential_id: str) -> None:
        """Permanently remove a credential and delete its cookie file.

        Destructive: only call when an authorization failure is attributed to
        this credential. Invalidating an already-removed credential is a no-op.
        """
        with self._lock:
            already = credential_id in self._invalidated
            self._invalidated.add(credential_id)

        path = self.cookies_dir / credential_id
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            # Still excluded from enumeration via the invalidation set
            logger.warning(f"Could not delete credential file {path}: {e}")

        if not already:
            logger.warning(f"Invalidated credential {credential_id}")

    def is_empty(self) -> bool:
        return not self.list()

    def __len__(self) -> int:
        return len(self.list())
