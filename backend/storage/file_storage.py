"""
File storage abstraction.

Provides a simple interface for storing and retrieving cached place images.
Currently uses local filesystem, served back through the `/media` mount.
"""
import os
import tempfile
from pathlib import Path
from typing import Optional


class FileStorage:
    """
    Local file storage implementation.

    Files are organized as:
    - media/place-images/{provider}/{place_hash}.jpg  - Cached place images
    """

    PLACE_IMAGES_DIR = "place-images"

    def __init__(self, media_root: str = "media", public_base_url: str = ""):
        self.media_root = Path(media_root)
        self.media_root.mkdir(parents=True, exist_ok=True)
        self.public_base_url = public_base_url.rstrip("/")

    def place_image_path(self, provider: str, place_hash: str) -> str:
        """Relative path for a place image (deterministic per provider + hash)."""
        return f"{self.PLACE_IMAGES_DIR}/{provider}/{place_hash}.jpg"

    def save_place_image(self, provider: str, place_hash: str, data: bytes) -> str:
        """
        Save place image bytes, overwriting any previous file for the same place.

        The write goes through a temp file in the target directory so readers
        never see a half-written image.

        Returns:
            Relative path to the saved file
        """
        relative_path = self.place_image_path(provider, place_hash)
        file_path = self.media_root / relative_path
        file_path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(dir=str(file_path.parent), suffix=".part")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_name, file_path)
        except OSError:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

        return relative_path

    def public_url(self, relative_path: str) -> str:
        """URL under which the `/media` mount serves a stored file."""
        return f"{self.public_base_url}/media/{relative_path}"

    def get_absolute_path(self, relative_path: str) -> Path:
        """Convert a relative path to absolute."""
        return self.media_root / relative_path

    def file_exists(self, relative_path: str) -> bool:
        """Check if a file exists."""
        return (self.media_root / relative_path).exists()

    def delete_file(self, relative_path: str) -> bool:
        """Delete a file. Returns True if deleted."""
        path = self.media_root / relative_path
        if path.exists():
            path.unlink()
            return True
        return False

    def is_writable(self) -> bool:
        """Check that the media root accepts new files."""
        probe: Optional[Path] = None
        try:
            fd, name = tempfile.mkstemp(dir=str(self.media_root), suffix=".probe")
            os.close(fd)
            probe = Path(name)
            return True
        except OSError:
            return False
        finally:
            if probe is not None and probe.exists():
                probe.unlink()
