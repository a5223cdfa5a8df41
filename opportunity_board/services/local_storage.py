"""Local file storage for uploads that do not go through Airtable."""

import asyncio
import base64
import logging
import time
from pathlib import Path

from opportunity_board.core.exceptions import InvalidPayloadError
from opportunity_board.utils.validators import sanitize_filename

logger = logging.getLogger(__name__)

CONTENT_TYPES = {
    ".pdf": "application/pdf",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".txt": "text/plain; charset=utf-8",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".rtf": "application/rtf",
}


class InvalidPathError(InvalidPayloadError):
    """Raised when a requested path escapes the upload root."""

    def __init__(self):
        super().__init__("Invalid path")


class LocalUploadStorage:
    """Stores files under a fixed root directory."""

    def __init__(self, root: Path, clock=None):
        self.root = Path(root).resolve()
        self._clock = clock or time.time

    def stored_name(self, filename: str) -> str:
        return f"{int(self._clock() * 1000)}-{sanitize_filename(filename)}"

    async def save(self, filename: str, payload_base64: str) -> str:
        """Write a base64 payload to disk and return the stored file name."""
        data = base64.b64decode(payload_base64)
        name = self.stored_name(filename)
        target = self.resolve(name)

        def _write() -> None:
            self.root.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)

        await asyncio.to_thread(_write)
        logger.info(f"Stored upload {name} ({len(data)} bytes)")
        return name

    def resolve(self, relative_path: str) -> Path:
        """Absolute path for ``relative_path``, which must stay inside the root."""
        full_path = (self.root / relative_path).resolve()
        if full_path == self.root or not full_path.is_relative_to(self.root):
            raise InvalidPathError()
        return full_path

    async def read(self, relative_path: str) -> bytes:
        """Read a stored file. Raises ``FileNotFoundError`` when absent."""
        path = self.resolve(relative_path)
        return await asyncio.to_thread(path.read_bytes)

    @staticmethod
    def content_type(path: str | Path) -> str:
        return CONTENT_TYPES.get(Path(path).suffix.lower(), "application/octet-stream")
