"""
Integrity verification for identifiers and stored objects.

Provides identifier syntax checks and tamper detection.
"""

import re
from pathlib import Path

from ..errors import InvalidObjectIdError, ObjectCorruptedError, StorageError
from .hashing import DEFAULT_ALGORITHM, compute_hash, hash_stream

_HEX_PATTERN = re.compile(r'^[0-9a-f]+$')


def validate_object_id(object_id: str, expected_length: int) -> str:
    """
    Check that an identifier is a well-formed digest.

    Identifiers are lowercase hex of a fixed length. Anything else
    (path separators, dots, uppercase, wrong length) is rejected
    before it can be used as a path component.

    Returns the identifier unchanged. Raises InvalidObjectIdError.
    """
    if not isinstance(object_id, str):
        raise InvalidObjectIdError(repr(object_id), "identifier must be a string")
    if len(object_id) != expected_length:
        raise InvalidObjectIdError(
            object_id,
            f"expected {expected_length} hex characters, got {len(object_id)}",
        )
    if not _HEX_PATTERN.match(object_id):
        raise InvalidObjectIdError(object_id, "expected lowercase hexadecimal")
    return object_id


def is_valid_object_id(object_id: str, expected_length: int) -> bool:
    """Return True if the identifier is a well-formed digest."""
    try:
        validate_object_id(object_id, expected_length)
    except InvalidObjectIdError:
        return False
    return True


def verify_file_integrity(path: Path, object_id: str, algorithm: str = DEFAULT_ALGORITHM) -> None:
    """
    Verify that a stored file's content matches its identifier.

    Raises ObjectCorruptedError if mismatch detected.
    """
    try:
        with open(path, 'rb') as f:
            actual_hash = hash_stream(f, algorithm)
    except OSError as e:
        raise StorageError("verify_object", str(path), e) from e

    if actual_hash != object_id:
        raise ObjectCorruptedError(object_id, actual_hash)


def detect_tampering(object_id: str, stored_data: bytes, algorithm: str = DEFAULT_ALGORITHM) -> bool:
    """
    Detect if an object has been tampered with.

    Compares the identifier against the recomputed hash of the data.

    Returns True if tampering detected, False otherwise.
    """
    return compute_hash(stored_data, algorithm) != object_id
