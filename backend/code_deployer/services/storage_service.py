"""
Service for uploaded source archive storage.
"""
import logging
import os
import re
import time
from pathlib import Path
from typing import Optional

from code_deployer.core.config import settings
from code_deployer.core.exceptions import ArtifactNotFoundError, StorageError

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def sanitize_segment(segment: str) -> str:
    """Make a single path segment safe for the filesystem and for URLs."""
    cleaned = _UNSAFE_CHARS.sub("_", segment.strip())
    cleaned = cleaned.lstrip(".")
    return cleaned or "_"


class ArtifactStorage:
    """
    Durable storage for uploaded source archives.

    Archives are written under root_path and addressed by a URL built from
    public_base_url and the same relative path.
    """

    def __init__(self, root_path: str, public_base_url: str):
        """
        Initialize storage.

        Args:
            root_path: Directory that receives the archives
            public_base_url: Base URL the stored files are served from
        """
        self.root_path = Path(root_path)
        self.public_base_url = public_base_url.rstrip("/")

    def build_relative_path(self, destination_hint: str) -> str:
        """
        Turn a destination hint ("<owner>/<filename>") into a unique relative path.

        Every segment is sanitized and the filename is prefixed with the
        current epoch milliseconds so repeated uploads never collide.
        """
        parts = [p for p in destination_hint.replace("\\", "/").split("/") if p not in ("", ".", "..")]
        if not parts:
            parts = ["artifact"]
        *folders, filename = parts
        safe_folders = [sanitize_segment(p) for p in folders]
        safe_name = f"{int(time.time() * 1000)}_{sanitize_segment(filename)}"
        return "/".join(safe_folders + [safe_name])

    def get_absolute_path(self, relative_path: str) -> Path:
        """Get absolute path from a relative storage path."""
        return self.root_path / relative_path

    def store(self, content: bytes, destination_hint: str) -> str:
        """
        Store an archive and return its durable URL.

        Args:
            content: Archive bytes
            destination_hint: "<owner>/<filename>" placement hint

        Returns:
            URL the archive can be fetched from

        Raises:
            StorageError: If the file cannot be written
        """
        relative_path = self.build_relative_path(destination_hint)
        abs_path = self.get_absolute_path(relative_path)

        try:
            abs_path.parent.mkdir(parents=True, exist_ok=True)
            with open(abs_path, "wb") as f:
                f.write(content)
        except OSError as e:
            if abs_path.exists():
                os.remove(abs_path)
            raise StorageError("artifact upload", str(e)) from e

        logger.info(f"Stored artifact {relative_path} ({len(content)} bytes)")
        return f"{self.public_base_url}/{relative_path}"

    def resolve_relative_path(self, relative_path: str) -> Optional[Path]:
        """Resolve a stored relative path, or None if it escapes the storage root."""
        abs_path = self.get_absolute_path(relative_path).resolve()
        try:
            abs_path.relative_to(self.root_path.resolve())
        except ValueError:
            return None
        return abs_path

    def url_to_path(self, url: str) -> Optional[Path]:
        """Map a URL produced by store() back to its file, or None if foreign."""
        prefix = f"{self.public_base_url}/"
        if not url.startswith(prefix):
            return None
        return self.resolve_relative_path(url[len(prefix):])

    def open_artifact(self, relative_path: str) -> Path:
        """
        Locate a stored archive for download.

        Raises:
            ArtifactNotFoundError: If the path is outside storage or no file exists
        """
        abs_path = self.resolve_relative_path(relative_path)
        if abs_path is None or not abs_path.is_file():
            raise ArtifactNotFoundError(relative_path)
        return abs_path

    def delete(self, url: str) -> bool:
        """
        Remove a stored archive. Best effort.

        Returns:
            True if a file was removed
        """
        abs_path = self.url_to_path(url)
        if abs_path is None:
            return False
        try:
            abs_path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning(f"Could not delete artifact {url}: {e}")
            return False

    def is_available(self) -> bool:
        """Check that the storage root exists (or can be created) and is writable."""
        try:
            self.root_path.mkdir(parents=True, exist_ok=True)
        except OSError:
            return False
        return os.access(self.root_path, os.W_OK)


# Singleton instance
artifact_storage = ArtifactStorage(
    root_path=settings.ARTIFACT_STORAGE_PATH,
    public_base_url=settings.ARTIFACT_PUBLIC_BASE_URL,
)
