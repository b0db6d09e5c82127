import os
from pathlib import Path
from typing import BinaryIO
import logging

from app.exceptions import StorageNameTaken

log = logging.getLogger(__name__)

# -------------------------
# Local Byte Store
# -------------------------
class LocalFileStore:
    """A single flat directory of byte streams keyed by storage name."""

    def __init__(self, upload_path: str):
        self.root = Path(upload_path).expanduser().resolve()
        self.root.mkdir(parents=True, exist_ok=True)
        log.info("Initialized local file store at %s", self.root)

    def path_for(self, name: str) -> Path:
        path = (self.root / name).resolve()
        if path.parent != self.root:
            raise ValueError(f"Invalid storage name: {name!r}")
        return path

    def write(self, name: str, data: bytes, content_type: str):
        path = self.path_for(name)
        try:
            fh = open(path, "xb")
        except FileExistsError:
            raise StorageNameTaken(name)
        try:
            with fh:
                fh.write(data)
                fh.flush()
                os.fsync(fh.fileno())
        except OSError:
            # Partial writes never stay behind
            path.unlink(missing_ok=True)
            raise
        log.debug("Wrote %d bytes to %s", len(data), path)

    def open(self, name: str) -> BinaryIO:
        return open(self.path_for(name), "rb")

    def exists(self, name: str) -> bool:
        return self.path_for(name).is_file()

    def delete(self, name: str):
        self.path_for(name).unlink(missing_ok=True)
        log.debug("Deleted %s", name)

    def ping(self):
        if not os.access(self.root, os.R_OK | os.W_OK):
            raise PermissionError(f"Storage not accessible: {self.root}")

    def close(self):
        log.info("Closed local file store")
