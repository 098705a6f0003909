"""SHA-256 verification utilities for image integrity checking."""

import hashlib
from pathlib import Path
import logging


def compute_sha256(file_path: Path, chunk_size: int = 1024 * 1024) -> str:
    """Compute SHA-256 hash of a file.

    Args:
        file_path: Path to file to hash
        chunk_size: Read buffer size (default 1MB)

    Returns:
        64-character hex SHA-256 hash string

    Raises:
        FileNotFoundError: If file doesn't exist
        IOError: If file read fails
    """
    logger = logging.getLogger("flasher.verification")
    sha256_hash = hashlib.sha256()

    try:
        with open(file_path, "rb") as f:
            while chunk := f.read(chunk_size):
                sha256_hash.update(chunk)

        result = sha256_hash.hexdigest()
        logger.debug(f"Computed SHA-256 for {file_path.name}: {result}")
        return result

    except FileNotFoundError:
        logger.error(f"File not found: {file_path}")
        raise
    except IOError as e:
        logger.error(f"Failed to read file {file_path}: {e}")
        raise


def verify_sha256(file_path: Path, expected_sha256: str) -> bool:
    """Verify file SHA-256 hash matches expected value.

    Args:
        file_path: Path to file to verify
        expected_sha256: Expected hash (64-char hex string)

    Returns:
        True if the hash matches, False otherwise

    Raises:
        FileNotFoundError: If file doesn't exist
        ValueError: If expected_sha256 format is invalid
    """
    logger = logging.getLogger("flasher.verification")

    if not isinstance(expected_sha256, str) or len(expected_sha256) != 64:
        raise ValueError(
            f"Invalid SHA-256 format: {expected_sha256} (must be 64-char hex)"
        )

    expected_sha256 = expected_sha256.lower()
    actual_sha256 = compute_sha256(file_path)

    match = actual_sha256 == expected_sha256
    if match:
        logger.info(f"SHA-256 verification passed for {file_path.name}")
    else:
        logger.warning(
            f"SHA-256 mismatch for {file_path.name}: "
            f"expected {expected_sha256}, got {actual_sha256}"
        )

    return match
