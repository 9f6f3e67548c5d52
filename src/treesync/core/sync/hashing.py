"""
Content addressing for blobs.

Computes the same identifier the remote host assigns to a blob, so
unchanged files can be detected without downloading anything:

    sha1(b"blob " + str(len(content)) + b"\\0" + content)
"""

from __future__ import annotations

import hashlib


def blob_sha(content: bytes) -> str:
    """
    Compute the git blob sha of raw bytes.

    Pure and deterministic: the result depends only on ``content``, never on
    the path or on call order.

    Args:
        content: Raw file bytes (not a re-encoded representation)

    Returns:
        40-character hex digest

    Raises:
        TypeError: If ``content`` is not bytes-like

    Example:
        >>> blob_sha(b"")
        'e69de29bb2d1d6434b8b29ae775ad8c2e48c5391'
    """
    if not isinstance(content, (bytes, bytearray, memoryview)):
        raise TypeError(f"blob_sha expects bytes, got {type(content).__name__}")
    data = bytes(content)
    header = f"blob {len(data)}\0".encode("ascii")
    return hashlib.sha1(header + data).hexdigest()


def text_blob_sha(text: str) -> str:
    """Blob sha of a text file stored as UTF-8."""
    return blob_sha(text.encode("utf-8"))
