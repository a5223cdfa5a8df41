"""Tests for local upload storage."""

import base64

import pytest

from opportunity_board.services.local_storage import (
    InvalidPathError,
    LocalUploadStorage,
)


@pytest.fixture
def storage(tmp_path):
    return LocalUploadStorage(tmp_path / "uploads", clock=lambda: 1_700_000_000.5)


class TestLocalUploadStorage:
    """Tests for LocalUploadStorage."""

    @pytest.mark.asyncio
    async def test_save_and_read(self, storage):
        """Saved files are named by timestamp and read back intact."""
        name = await storage.save("my cv.pdf", base64.b64encode(b"%PDF").decode())

        assert name == "1700000000500-my_cv.pdf"
        assert await storage.read(name) == b"%PDF"

    def test_traversal_is_rejected(self, storage):
        """Paths escaping the root are rejected."""
        with pytest.raises(InvalidPathError):
            storage.resolve("../secrets.txt")

    def test_root_itself_is_rejected(self, storage):
        """The root directory is not a file."""
        with pytest.raises(InvalidPathError):
            storage.resolve("")

    @pytest.mark.asyncio
    async def test_missing_file(self, storage):
        """Reading an absent file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            await storage.read("nope.pdf")

    @pytest.mark.parametrize(
        "name,content_type",
        [
            ("a.pdf", "application/pdf"),
            ("a.TXT", "text/plain; charset=utf-8"),
            (
                "a.docx",
                "application/vnd.openxmlformats-officedocument"
                ".wordprocessingml.document",
            ),
            ("a.bin", "application/octet-stream"),
        ],
    )
    def test_content_type(self, name, content_type):
        """Content types come from the extension."""
        assert LocalUploadStorage.content_type(name) == content_type
