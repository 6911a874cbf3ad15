import hashlib
from pathlib import Path
from typing import Union

HASH_ALGORITHM = "sha256"
_CHUNK_SIZE = 1024 * 1024


def hash_bytes(data: Union[bytes, bytearray]) -> str:
    """Return the hex SHA-256 digest of an in-memory buffer."""
    return hashlib.sha256(data).hexdigest()


def hash_file(path: Union[str, Path]) -> str:
    """Return the hex SHA-256 digest of a file, read in 1 MiB chunks."""
    digest = hashlib.sha256()
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()
