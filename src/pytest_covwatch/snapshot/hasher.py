"""Content hashing for change detection.

Content hashing lets the detector decide that a file or a test unit changed
from its bytes alone, independent of timestamps. Identical content produces
identical hashes, so unchanged files are skipped without being re-parsed.
"""

from __future__ import annotations

import hashlib


EMPTY_DIGEST = hashlib.sha256(b'').hexdigest()


class ContentHasher:
    """Produces content hashes for bytes and strings.

    Uses SHA-256 to produce deterministic hashes that uniquely identify
    content.

    Example:
        >>> hasher = ContentHasher()
        >>> result = hasher.hash_string('def test_foo(): assert 42')
        >>> len(result) == 64  # SHA-256 produces 64 hex characters
        True
    """

    def hash_bytes(self, content: bytes) -> str:
        """Hash raw bytes and return the hex digest."""
        return hashlib.sha256(content).hexdigest()

    def hash_string(self, content: str) -> str:
        """Hash a string and return its hex digest.

        Args:
            content: The string content to hash.

        Returns:
            A 64-character hexadecimal string (SHA-256 digest).
        """
        return self.hash_bytes(content.encode('utf-8'))

    def hash_combined(self, hashes: list[str]) -> str:
        """Combine multiple hashes into a single hash.

        The order of ``hashes`` matters; callers sort when they need an
        order-independent digest.

        Args:
            hashes: List of strings (usually hex digests) to combine.

        Returns:
            A single 64-character hexadecimal string.
        """
        if not hashes:
            return EMPTY_DIGEST
        return self.hash_string('\n'.join(hashes))
