"""
auth/avatars.py -- Default avatar URLs and uploaded avatar storage.

Default avatars are gravatar identicons: a deterministic function of the
email, so every new account has a usable avatarURL without any upload.

Uploaded avatars are written to a temp file inside the avatars directory and
moved into place with os.replace(), which is atomic on a single filesystem.
The stored name is always {account_id}{ext}, so accounts can never overwrite
each other's files. The caller updates the account record only after save()
returns; a failed move leaves the record pointing at the previous asset.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import hashlib
import logging
import os
import tempfile
from pathlib import Path

logger = logging.getLogger("accounts.auth")

ALLOWED_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".gif", ".webp"})

_GRAVATAR_URL = "https://www.gravatar.com/avatar/{digest}?s=250&d=identicon"


def default_avatar_url(email: str) -> str:
    """Return the gravatar identicon URL for an email.

    Gravatar keys on MD5 of the trimmed, lower-cased address. MD5 here is an
    identifier, not a security primitive.
    """
    digest = hashlib.md5(email.strip().lower().encode("utf-8"), usedforsecurity=False).hexdigest()
    return _GRAVATAR_URL.format(digest=digest)


def avatar_extension(filename: str) -> str:
    """Return the lower-cased extension (with dot) of an uploaded filename, or ""."""
    return Path(filename or "").suffix.lower()


class LocalAvatarStorage:
    """Stores avatars under a local directory served at /{url_prefix}/."""

    def __init__(self, directory: Path, url_prefix: str = "avatars") -> None:
        self.directory = Path(directory)
        self.url_prefix = url_prefix.strip("/")
        self.directory.mkdir(parents=True, exist_ok=True)

    def save(self, account_id: str, extension: str, data: bytes) -> str:
        """Persist data as {account_id}{extension} and return its relative URL.

        Raises OSError if the write or the rename fails; the temp file is
        removed in that case.
        """
        final_name = f"{account_id}{extension}"
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=".upload-")
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
            os.replace(tmp_name, self.directory / final_name)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.info("Avatar stored for account %s (%d bytes)", account_id, len(data))
        return f"{self.url_prefix}/{final_name}"

    def remove_stale(self, account_id: str, avatar_url: str) -> None:
        """Delete this account's avatars other than the one at avatar_url.

        Called after the account record points at the new file.
        """
        keep = avatar_url.rsplit("/", 1)[-1]
        for path in self.directory.glob(f"{account_id}.*"):
            if path.name != keep:
                path.unlink(missing_ok=True)
