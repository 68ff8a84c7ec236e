from __future__ import annotations

from Cryptodome.Hash import SHA1

from .constants import READ_CHUNK_SIZE


def sha1_hex(data: bytes) -> str:
    # The pass manifest format mandates SHA-1; do not upgrade.
    h = SHA1.new()
    h.update(data)
    return h.hexdigest()


def sha1_hex_file(path: str, chunk_size: int = READ_CHUNK_SIZE) -> str:
    """Stream ``path`` through SHA-1 and return the lowercase hex digest."""
    h = SHA1.new()
    with open(path, "rb") as fh:
        while True:
            buf = fh.read(chunk_size)
            if not buf:
                break
            h.update(buf)
    return h.hexdigest()
