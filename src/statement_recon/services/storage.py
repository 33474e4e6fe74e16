"""Durable storage for uploaded statement files."""

from pathlib import Path
from typing import Protocol
import logging
import mimetypes
import re
import uuid

from ..models.transaction import StoredFile
from ..utils.exceptions import StorageError

logger = logging.getLogger(__name__)


class FileStorage(Protocol):
    """Upload operation the reconciliation pipeline depends on."""

    def upload_file(
        self, filename: str, content: bytes, organization_id: str, folder: str
    ) -> StoredFile:
        ...


class LocalFileStorage:
    """
    Stores statements on the local filesystem.

    Files land at ``<root>/<organization>/<folder>/<uuid>-<name>`` and the
    returned URL is a ``file://`` URI.
    """

    def __init__(self, root: Path):
        self.root = root

    def upload_file(
        self, filename: str, content: bytes, organization_id: str, folder: str
    ) -> StoredFile:
        """
        Write the file and return its storage reference.

        Raises:
            StorageError: If the file cannot be written
        """
        safe_name = re.sub(r"[^A-Za-z0-9._-]", "_", Path(filename).name)
        file_key = f"{organization_id}/{folder}/{uuid.uuid4().hex}-{safe_name}"
        target = self.root / file_key

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(content)
        except OSError as e:
            logger.error(f"Failed to store {filename}: {e}")
            raise StorageError(f"Failed to store {filename}: {e}") from e

        logger.info(f"Stored statement {filename} as {file_key} ({len(content)} bytes)")

        return StoredFile(
            file_url=target.resolve().as_uri(),
            file_key=file_key,
            file_size=len(content),
            file_type=mimetypes.guess_type(filename)[0] or "application/octet-stream",
        )
