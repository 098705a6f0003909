"""Startup capability checks for the flashing environment."""

import logging
import os
from pathlib import Path
from typing import Any, Optional

DEVICE_METHODS = (
    "wait_for_connect",
    "get_device_partitions_info",
    "get_active_slot",
    "set_active_slot",
    "erase",
    "flash_blob",
    "reset",
)
WORKER_METHODS = ("init", "download_image", "unpack_image", "get_image")


def _missing_methods(obj: Any, methods: tuple) -> list[str]:
    return [name for name in methods if not callable(getattr(obj, name, None))]


def check_requirements(
    device: Optional[Any], worker: Optional[Any], storage_dir: Path
) -> list[str]:
    """List the capabilities the environment is missing.

    Checks for a device connection driver, a background image worker, and a
    writable storage directory (created if needed).

    Args:
        device: Device driver instance, or None if none is configured
        worker: Image worker instance
        storage_dir: Directory for downloaded and unpacked images

    Returns:
        Human-readable descriptions of missing capabilities (empty if all present)
    """
    logger = logging.getLogger("flasher.environment")
    missing = []

    if device is None:
        missing.append("device connection driver not configured")
    elif _missing_methods(device, DEVICE_METHODS):
        missing.append(
            f"device driver lacks {', '.join(_missing_methods(device, DEVICE_METHODS))}"
        )

    if worker is None:
        missing.append("image worker not available")
    elif _missing_methods(worker, WORKER_METHODS):
        missing.append(
            f"image worker lacks {', '.join(_missing_methods(worker, WORKER_METHODS))}"
        )

    try:
        storage_dir.mkdir(parents=True, exist_ok=True)
        if not os.access(storage_dir, os.W_OK):
            missing.append(f"storage directory not writable: {storage_dir}")
    except OSError as e:
        missing.append(f"storage directory unavailable: {storage_dir} ({e})")

    for item in missing:
        logger.error(f"Requirement not met: {item}")
    return missing
