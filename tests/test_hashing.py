import hashlib

from docportal.core.hashing import hash_bytes, hash_file


def test_hash_bytes_is_lowercase_hex_sha256():
    digest = hash_bytes(b"report card")
    assert digest == hashlib.sha256(b"report card").hexdigest()
    assert len(digest) == 64
    assert digest == digest.lower()


def test_hash_file_matches_hash_bytes(tmp_path):
    data = b"x" * (3 * 1024 * 1024 + 17)
    path = tmp_path / "big.bin"
    path.write_bytes(data)
    assert hash_file(path) == hash_bytes(data)


def test_hash_of_empty_input():
    assert hash_bytes(b"") == "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
