"""
Attachment storage.
Files are written under UPLOAD_DIR; ``public_id`` is the stored file name and
is what the task keeps to delete the file later.
"""
from __future__ import annotations

import logging
import os
import uuid
from dataclasses import dataclass

from taskboard.core.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredFile:
    public_id: str
    url: str
    size: int


class LocalAttachmentStorage:

    def __init__(self, root: str) -> None:
        self.root = root

    def _path(self, public_id: str) -> str:
        # public_id never carries directory parts
        return os.path.join(self.root, os.path.basename(public_id))

    def save(self, filename: str, content: bytes) -> StoredFile:
        os.makedirs(self.root, exist_ok=True)
        public_id = f"{uuid.uuid4().hex}_{os.path.basename(filename) or 'file'}"
        path = self._path(public_id)
        with open(path, "wb") as f:
            f.write(content)
        return StoredFile(public_id=public_id, url=f"/uploads/{public_id}", size=len(content))

    def delete(self, public_id: str) -> None:
        """Remove a stored file; a failure is logged and does not propagate."""
        path = self._path(public_id)
        try:
            if os.path.exists(path):
                os.remove(path)
        except OSError as exc:
            logger.error("Failed to delete attachment %s: %s", public_id, exc)


attachment_storage = LocalAttachmentStorage(settings.UPLOAD_DIR)
