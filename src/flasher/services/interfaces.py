"""Interfaces of the collaborators driven by the flash session.

The device transport and the image worker live outside the session; the
session only talks to them through these protocols.
"""

from pathlib import Path
from typing import Callable, Optional, Protocol, Union

from flasher.models.manifest import ImageDescriptor
from flasher.models.status import UnpackFailureKind

ProgressCallback = Callable[[float], None]
Payload = Union[bytes, Path]


class DeviceError(Exception):
    """Raised by device drivers when a device operation fails."""


class DeviceDisconnectedError(DeviceError):
    """Raised by device drivers when the device goes away mid-operation."""


class UnpackError(Exception):
    """Raised by image workers when an image cannot be unpacked.

    The kind tells the session whether the failure was an integrity problem
    or anything else.
    """

    def __init__(self, kind: UnpackFailureKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message


class DeviceDriver(Protocol):
    """Async driver for a dual-slot device in its flashing mode."""

    serial: Optional[str]

    async def wait_for_connect(self) -> None:
        """Suspend until a device attaches and completes its handshake."""
        ...

    async def get_device_partitions_info(self) -> tuple[int, list[str]]:
        """Return (slot_count, partition names)."""
        ...

    async def get_active_slot(self) -> str:
        """Return the currently active slot identifier."""
        ...

    async def set_active_slot(self, slot: str) -> None:
        """Point the device's boot selection at slot."""
        ...

    async def erase(self, partition_name: str) -> None:
        """Erase a partition."""
        ...

    async def flash_blob(
        self,
        partition_name: str,
        payload: Payload,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        """Write payload (bytes or a file path) to a partition."""
        ...

    async def reset(self) -> None:
        """Reboot the device out of flashing mode."""
        ...


class ImageWorker(Protocol):
    """Async worker that downloads and unpacks manifest images."""

    async def init(self) -> None:
        """Prepare storage used by the worker."""
        ...

    async def download_image(
        self, image: ImageDescriptor, on_progress: ProgressCallback
    ) -> None:
        """Fetch the compressed image."""
        ...

    async def unpack_image(
        self, image: ImageDescriptor, on_progress: ProgressCallback
    ) -> None:
        """Unpack and verify a downloaded image.

        Raises:
            UnpackError: On any failure, with the failure kind set
        """
        ...

    async def get_image(self, image: ImageDescriptor) -> Path:
        """Return the path of the unpacked image."""
        ...
