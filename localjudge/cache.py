import logging
import shutil
import uuid
from pathlib import Path
from typing import Iterable, Set, Union

logger = logging.getLogger(__name__)


class IoCache:
    """Pool of temporary file paths for captured output and spilled test data.

    Paths handed out by ``create_io`` are returned with ``dispose`` and reused
    by later runs, so long sessions do not leave one file per execution behind.
    The files themselves are neither created nor truncated here; whoever
    receives a path writes it from scratch.
    """

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)
        self.used: Set[str] = set()
        self.free: Set[str] = set()

    def ensure_dir(self) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        return self.directory

    @property
    def bin_dir(self) -> Path:
        path = self.directory / "bin"
        path.mkdir(parents=True, exist_ok=True)
        return path

    def create_io(self) -> str:
        if self.free:
            path = self.free.pop()
            logger.debug("Reusing cached path %s", path)
        else:
            self.ensure_dir()
            path = str(self.directory / uuid.uuid4().hex)
            logger.debug("Creating new cached path %s", path)
        self.used.add(path)
        return path

    def dispose(self, paths: Union[str, Iterable[str], None]) -> None:
        if paths is None:
            return
        if isinstance(paths, str):
            paths = [paths]
        for path in paths:
            if path in self.free:
                logger.warning("Duplicate dispose of %s", path)
            elif path in self.used:
                self.used.remove(path)
                self.free.add(path)
            else:
                logger.debug("Path %s is not disposable", path)

    def release(self, path: str) -> None:
        """Give up a path for good; its file is kept and never reused."""
        self.used.discard(path)

    def owns(self, path: str) -> bool:
        return path in self.used

    def cleanup(self) -> int:
        """Delete the files of every path in the free pool."""
        cleaned = 0
        for path in list(self.free):
            try:
                Path(path).unlink()
                cleaned += 1
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning("Failed to remove cached file %s: %s", path, e)
                continue
            self.free.discard(path)
        if cleaned:
            logger.info("Cleaned %d cached io files", cleaned)
        return cleaned

    def clear(self) -> None:
        """Remove the whole cache directory, compiled artifacts included."""
        shutil.rmtree(self.directory, ignore_errors=True)
        self.used.clear()
        self.free.clear()
