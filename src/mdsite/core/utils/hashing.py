"""SHA-256 hashing for source change detection and rendered output tracking"""

import hashlib


def sha256(content: str) -> str:
    """Return hex-encoded SHA-256 hash of text content (64 chars, matches String(64) column)."""
    return sha256_bytes(content.encode("utf-8"))


def sha256_bytes(data: bytes) -> str:
    """Return hex-encoded SHA-256 hash of raw bytes."""
    return hashlib.sha256(data).hexdigest()
