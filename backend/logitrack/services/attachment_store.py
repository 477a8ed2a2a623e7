"""Local storage for chat attachments"""

import logging
from pathlib import Path
from typing import Optional

from logitrack.config import settings

logger = logging.getLogger(__name__)


class AttachmentStore:
    """Files live under UPLOADS_DIR and are addressed by their relative key"""

    def __init__(self, root: Optional[str] = None):
        self._root = root

    @property
    def root(self) -> Path:
        return Path(self._root or settings.get_uploads_dir()).resolve()

    def path_for(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root not in path.parents:
            raise ValueError(f"Attachment key escapes upload directory: {key}")
        return path

    def delete(self, key: Optional[str]) -> bool:
        """Remove a stored file; returns False if there was nothing to remove"""
        if not key:
            return False
        try:
            path = self.path_for(key)
        except ValueError:
            logger.warning(f"Refusing to delete attachment outside uploads: {key}")
            return False
        if not path.is_file():
            return False
        path.unlink()
        logger.info(f"Deleted attachment: {key}")
        return True


attachment_store = AttachmentStore()
