"""
Digest engine for content addressing.

Maps hash algorithm names to constructors and provides incremental
and one-shot digest computation. SHA-256 is the default; BLAKE3 is
available through the blake3 package.
"""

import hashlib
from typing import BinaryIO, Callable, Dict

import blake3

from ..errors import ConfigurationError

DEFAULT_ALGORITHM = 'sha256'
DEFAULT_CHUNK_SIZE = 64 * 1024

HASH_ALGORITHMS: Dict[str, Callable] = {
    'sha256': hashlib.sha256,
    'sha512': hashlib.sha512,
    'blake2b': hashlib.blake2b,
    'blake3': blake3.blake3,
}


def get_hash_constructor(algorithm: str = DEFAULT_ALGORITHM) -> Callable:
    """
    Look up the hash construction for an algorithm name.

    Raises ConfigurationError for unknown names.
    """
    try:
        return HASH_ALGORITHMS[algorithm]
    except KeyError:
        known = ', '.join(sorted(HASH_ALGORITHMS))
        raise ConfigurationError(
            f"Unknown hash algorithm {algorithm!r} (known: {known})"
        ) from None


def hex_length(algorithm: str = DEFAULT_ALGORITHM) -> int:
    """Length of a hex identifier produced by the given algorithm."""
    return len(get_hash_constructor(algorithm)().hexdigest())


def compute_hash(data: bytes, algorithm: str = DEFAULT_ALGORITHM) -> str:
    """
    Compute hash of raw bytes.

    Returns hex-encoded hash string.
    """
    hasher = get_hash_constructor(algorithm)()
    hasher.update(data)
    return hasher.hexdigest()


def hash_stream(
    stream: BinaryIO,
    algorithm: str = DEFAULT_ALGORITHM,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> str:
    """Compute hash of a readable binary stream, chunk by chunk."""
    hasher = get_hash_constructor(algorithm)()
    for chunk in iter(lambda: stream.read(chunk_size), b''):
        hasher.update(chunk)
    return hasher.hexdigest()


def verify_hash(data: bytes, expected_hash: str, algorithm: str = DEFAULT_ALGORITHM) -> bool:
    """
    Verify that data matches expected hash.

    Returns True if match, False otherwise.
    """
    return compute_hash(data, algorithm) == expected_hash
