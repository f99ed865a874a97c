from pathlib import Path
from typing import Union

from perfwatch.platform.logger import get_logger

logger = get_logger(__name__)


class ArtifactNotFound(Exception):
    """Raised when reading a file that does not exist in the store."""


class FileStore:
    """
    Content-type agnostic file store rooted at a directory.

    Paths are relative to the root. Parent directories are created on demand
    before every write, so concurrent writers of distinct files are safe.
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    def path_for(self, relative_path: Union[str, Path]) -> Path:
        return self.root / relative_path

    def write(self, relative_path: Union[str, Path], content: Union[bytes, str]) -> Path:
        file_path = self.path_for(relative_path)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            file_path.write_bytes(content)
        else:
            file_path.write_text(content, encoding="utf-8")
        return file_path

    def read_bytes(self, relative_path: Union[str, Path]) -> bytes:
        try:
            return self.path_for(relative_path).read_bytes()
        except FileNotFoundError as e:
            raise ArtifactNotFound(str(relative_path)) from e

    def read_text(self, relative_path: Union[str, Path]) -> str:
        try:
            return self.path_for(relative_path).read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise ArtifactNotFound(str(relative_path)) from e

    def exists(self, relative_path: Union[str, Path]) -> bool:
        return self.path_for(relative_path).is_file()

    def delete(self, relative_path: Union[str, Path]) -> bool:
        """
        Delete a file. Returns False if it was already gone; other OS errors
        are logged and also reported as False.
        """
        try:
            self.path_for(relative_path).unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.error(f"Failed to delete {relative_path}: {e}")
            return False
