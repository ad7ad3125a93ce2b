# aravalli/file_access.py
"""Read/write access to the front-end source tree for the admin tools.

Paths are relative to the project base directory and must live under the
source root (``static/`` by default). A path is rejected unless it starts
with the root prefix, carries no parent-directory marker in any decoded
form, and still resolves inside the root once symlinks are followed.
"""
import os
import tempfile
from typing import Dict, Iterable, List, Optional
from urllib.parse import unquote

from .errors import NotFoundError, StorageError, ValidationError
from .log import get_logger

logger = get_logger(__name__)

INVALID_PATH = "Invalid path"
_MAX_DECODE_ROUNDS = 3


class FileAccessService:
    def __init__(self, base_dir: str, root: str = "static",
                 extensions: Iterable[str] = (".html", ".css", ".js", ".ts", ".tsx"),
                 excluded_dirs: Iterable[str] = ("node_modules",)):
        self.base_dir = os.path.abspath(base_dir)
        self.root = root.strip("/")
        self.prefix = self.root + "/"
        self.root_dir = os.path.join(self.base_dir, self.root)
        self.extensions = tuple(extensions)
        self.excluded_dirs = set(excluded_dirs)

    # --- Listing ---
    def list_files(self) -> List[str]:
        files = []
        if not os.path.isdir(self.root_dir):
            return files
        for dirpath, dirnames, filenames in os.walk(self.root_dir):
            dirnames[:] = [d for d in dirnames if d not in self.excluded_dirs]
            for filename in filenames:
                if filename.endswith(self.extensions):
                    full_path = os.path.join(dirpath, filename)
                    rel = os.path.relpath(full_path, self.base_dir)
                    files.append(rel.replace(os.sep, "/"))
        return sorted(files)

    # --- Validation ---
    def resolve(self, path: Optional[str]) -> str:
        """Map a client path to an absolute path inside the root or raise ValidationError."""
        if not path or not isinstance(path, str):
            raise ValidationError(INVALID_PATH)
        if "\x00" in path or "\\" in path or os.path.isabs(path):
            raise ValidationError(INVALID_PATH)
        if not path.startswith(self.prefix):
            raise ValidationError(INVALID_PATH)

        decoded = path
        for _ in range(_MAX_DECODE_ROUNDS):
            if ".." in decoded or "\x00" in decoded or "\\" in decoded:
                raise ValidationError(INVALID_PATH)
            next_decoded = unquote(decoded)
            if next_decoded == decoded:
                break
            decoded = next_decoded
        if ".." in decoded:
            raise ValidationError(INVALID_PATH)

        full_path = os.path.realpath(os.path.join(self.base_dir, path))
        real_root = os.path.realpath(self.root_dir)
        if full_path == real_root or os.path.commonpath([full_path, real_root]) != real_root:
            raise ValidationError(INVALID_PATH)
        return full_path

    # --- Read / write ---
    def read_file(self, path: str) -> str:
        full_path = self.resolve(path)
        if not os.path.isfile(full_path):
            raise NotFoundError("File not found")
        try:
            # newline="" keeps \r\n as written
            with open(full_path, "r", encoding="utf-8", newline="") as f:
                return f.read()
        except (OSError, UnicodeDecodeError) as e:
            logger.exception("Read file error: %s", path)
            raise StorageError("Failed to read file") from e

    def write_file(self, path: str, content: str) -> None:
        full_path = self.resolve(path)
        try:
            self._write_text(full_path, content)
        except (OSError, UnicodeError) as e:
            logger.exception("Write file error: %s", path)
            raise StorageError("Failed to write file") from e
        logger.info("Wrote %s (%d chars)", path, len(content))

    def write_many(self, changes: Dict[str, str]) -> List[str]:
        """Write every file or none of them.

        Prior contents are kept in memory as raw bytes and restored if any
        write fails; files that did not exist before are removed again.
        """
        resolved = [(path, self.resolve(path), content) for path, content in changes.items()]

        previous: Dict[str, Optional[bytes]] = {}
        for path, full_path, _ in resolved:
            try:
                if os.path.isfile(full_path):
                    with open(full_path, "rb") as f:
                        previous[full_path] = f.read()
                else:
                    previous[full_path] = None
            except OSError as e:
                logger.exception("Snapshot of %s failed, nothing written", path)
                raise StorageError(f"Failed to read {path}") from e

        written: List[str] = []
        for path, full_path, content in resolved:
            try:
                self._write_text(full_path, content)
            except (OSError, UnicodeError) as e:
                logger.error("Write to %s failed, rolling back %d file(s)", path, len(written))
                self._rollback(written, previous)
                raise StorageError(f"Failed to write to {path}") from e
            written.append(full_path)

        logger.info("Applied %d file change(s)", len(written))
        return [path for path, _, _ in resolved]

    def _rollback(self, written: List[str], previous: Dict[str, Optional[bytes]]) -> None:
        for full_path in reversed(written):
            try:
                if previous[full_path] is None:
                    os.remove(full_path)
                else:
                    self._write_bytes(full_path, previous[full_path])
            except OSError:
                logger.exception("Rollback failed for %s", full_path)

    def _write_text(self, full_path: str, content: str) -> None:
        # encode up front so unencodable text fails before any file is touched
        self._write_bytes(full_path, content.encode("utf-8"))

    def _write_bytes(self, full_path: str, data: bytes) -> None:
        # temp file + rename, so a crash never leaves a truncated file behind
        directory = os.path.dirname(full_path)
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".aw-", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_path, full_path)
        finally:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
