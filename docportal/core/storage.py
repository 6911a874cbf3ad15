import logging
import re
import time
from pathlib import Path
from typing import Union
from uuid import uuid4

logger = logging.getLogger(__name__)

PUBLIC_PREFIX = "/uploads/"
DOCUMENTS_SUBDIR = "documents"


class DocumentStorage:
    """Confine document file access to ``<uploads_root>/documents``.

    Stored paths are public-style ("/uploads/documents/<name>") so the same
    value can be served by a static file mount.
    """

    def __init__(self, uploads_root: Union[str, Path]) -> None:
        self.root = Path(uploads_root).resolve()
        self.documents_dir = self.root / DOCUMENTS_SUBDIR

    @staticmethod
    def _sanitize(filename: str) -> str:
        return re.sub(r"[^a-zA-Z0-9.\-_]", "_", filename or "document") or "document"

    def save(self, filename: str, data: bytes) -> str:
        """Write ``data`` to a fresh file and return its stored path."""
        self.documents_dir.mkdir(parents=True, exist_ok=True)
        timestamp = int(time.time() * 1000)
        name = f"{timestamp}-{uuid4().hex[:8]}-{self._sanitize(filename)}"
        (self.documents_dir / name).write_bytes(data)
        return f"{PUBLIC_PREFIX}{DOCUMENTS_SUBDIR}/{name}"

    def path_for(self, stored_path: str) -> Path:
        """Resolve a stored path to an absolute path inside the uploads root."""
        if stored_path.startswith(PUBLIC_PREFIX):
            relative = stored_path[len(PUBLIC_PREFIX):]
        else:
            relative = stored_path.lstrip("/")
        path = (self.root / relative).resolve()
        if self.root not in path.parents:
            raise ValueError(f"Stored path {stored_path!r} escapes the uploads directory")
        return path

    def exists(self, stored_path: str) -> bool:
        return self.path_for(stored_path).is_file()

    def read(self, stored_path: str) -> bytes:
        return self.path_for(stored_path).read_bytes()

    def remove(self, stored_path: str) -> None:
        """Best-effort delete; failures are logged, never raised."""
        try:
            self.path_for(stored_path).unlink()
        except FileNotFoundError:
            return
        except (OSError, ValueError):
            logger.warning("Failed to remove stored file %s", stored_path, exc_info=True)
