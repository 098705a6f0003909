"""Flash session: drives a device from connection to a freshly booted slot."""

import asyncio
import logging
from pathlib import Path
from typing import Optional

from flasher.models.device import DeviceInfo, Slot
from flasher.models.manifest import ImageDescriptor
from flasher.models.status import ErrorCode, Step
from flasher.services.interfaces import DeviceDriver, ImageWorker
from flasher.services.manifest_loader import ManifestError, ManifestLoader
from flasher.services.progress import with_progress
from flasher.services.recovery import (
    PhaseError,
    RecoveryController,
    classify_unpack_failure,
    translate_errors,
)
from flasher.services.state_manager import SessionState
from flasher.services.validator import is_recognized_device
from flasher.utils.environment import check_requirements

RESET_MARKER = b"COMMA_RESET"
RESET_PAYLOAD_SIZE = 28
USERDATA_PARTITION = "userdata"
BOOTLOADER_PARTITION = "xbl"
UNKNOWN_SERIAL = "unknown"


def build_reset_payload() -> bytes:
    """Userdata sentinel that makes the device wipe user data on next boot."""
    return RESET_MARKER.ljust(RESET_PAYLOAD_SIZE, b"\x00")


def _image_weight(image: ImageDescriptor) -> float:
    return image.size


class FlashSession:
    """State machine for one flash session.

    Steps:
    initializing → ready → connecting → downloading → unpacking → flashing → erasing → done

    Firmware is only ever written to the inactive slot, and the active slot
    pointer is switched after every image was written. Any failure halts the
    session with one coarse error code; the only way forward is a retry,
    which restarts the process.
    """

    def __init__(
        self,
        device: Optional[DeviceDriver],
        manifest_url: str,
        storage_dir: Path,
        state: Optional[SessionState] = None,
        recovery: Optional[RecoveryController] = None,
        manifest_loader: Optional[ManifestLoader] = None,
    ):
        """Initialize flash session.

        Args:
            device: Device driver, None if no driver is configured
            manifest_url: URL or path of the release manifest
            storage_dir: Directory the image worker stores images in
            state: SessionState instance (uses singleton if None)
            recovery: RecoveryController (created on the same state if None)
            manifest_loader: ManifestLoader (default loader if None)
        """
        self.logger = logging.getLogger("flasher.session")
        self.device = device
        self.manifest_url = manifest_url
        self.storage_dir = storage_dir
        self.state = state or SessionState()
        self.recovery = recovery or RecoveryController(state=self.state)
        self.manifest_loader = manifest_loader or ManifestLoader()

        self.image_worker: Optional[ImageWorker] = None
        self.manifest: list[ImageDescriptor] = []
        self.device_info: Optional[DeviceInfo] = None
        self._task: Optional[asyncio.Task] = None

    async def initialize(self, worker: ImageWorker) -> None:
        """Check the environment and load the manifest.

        On success the session is READY and a continue prompt is armed;
        otherwise REQUIREMENTS_NOT_MET or UNKNOWN is published.
        """
        self.image_worker = worker

        if check_requirements(self.device, worker, self.storage_dir):
            self.recovery.fail(ErrorCode.REQUIREMENTS_NOT_MET)
            return

        try:
            await worker.init()
            self.manifest = await self.manifest_loader.load(self.manifest_url)
            if not self.manifest:
                raise ManifestError("Manifest is empty")
        except Exception as e:
            self.logger.error(f"Initialization error: {e}", exc_info=True)
            self.recovery.fail(ErrorCode.UNKNOWN)
            return

        self.logger.debug(
            f"Loaded manifest: {[image.name for image in self.manifest]}"
        )
        self.state.advance_to(Step.READY)
        self.recovery.arm_continue(self.request_start)

    def request_start(self) -> None:
        """Start flashing in the background (the continue hook at READY)."""
        if self._task is not None and not self._task.done():
            self.logger.warning("Flashing already running")
            return
        self._task = asyncio.get_running_loop().create_task(self.start_flashing())

    async def wait(self) -> None:
        """Wait for a session started by request_start to finish."""
        if self._task is not None:
            await self._task

    async def start_flashing(self) -> None:
        """Run the whole session: connect, download, unpack, flash, erase."""
        if self.state.step.get() != Step.READY or self.state.error.get() != ErrorCode.NONE:
            self.logger.warning(
                f"Cannot start flashing from {self.state.step.get().name} "
                f"(error={self.state.error.get().name})"
            )
            return

        self.recovery.clear_continue()
        self.state.advance_to(Step.CONNECTING)
        try:
            await self._connect()
            await self._download_images()
            await self._unpack_images()
            await self._flash_device()
            await self._erase_device()

            self.state.advance_to(Step.DONE)
            self.state.set_message("Done")
        except Exception as e:
            self.recovery.handle_error(e)

    async def _connect(self) -> None:
        self.state.set_message("Waiting for device")
        await self.device.wait_for_connect()
        self.logger.info("Connected")

        slot_count, partitions = await self.device.get_device_partitions_info()
        self.device_info = DeviceInfo(slot_count=slot_count, partitions=list(partitions))
        recognized = is_recognized_device(slot_count, partitions)
        self.logger.debug(
            f"Device info: recognized={recognized}, slot_count={slot_count}, "
            f"partitions={partitions}"
        )

        if not recognized:
            raise PhaseError(ErrorCode.UNRECOGNIZED_DEVICE)

        self.state.serial.set(getattr(self.device, "serial", None) or UNKNOWN_SERIAL)
        self.state.connected.set(True)
        self.state.advance_to(Step.DOWNLOADING)

    async def _download_images(self) -> None:
        self.state.progress.set(0)
        with translate_errors(ErrorCode.DOWNLOAD_FAILED, "Download"):
            for image, on_progress in with_progress(
                self.manifest, self.state.progress.set, weight=_image_weight
            ):
                self.state.set_message(f"Downloading {image.name}")
                await self.image_worker.download_image(image, on_progress)

        self.logger.debug("Downloaded all images")
        self.state.advance_to(Step.UNPACKING)

    async def _unpack_images(self) -> None:
        self.state.progress.set(0)
        with translate_errors(
            ErrorCode.UNPACK_FAILED, "Unpack", classify=classify_unpack_failure
        ):
            for image, on_progress in with_progress(
                self.manifest, self.state.progress.set, weight=_image_weight
            ):
                self.state.set_message(f"Unpacking {image.name}")
                await self.image_worker.unpack_image(image, on_progress)

        self.logger.debug("Unpacked all images")
        self.state.advance_to(Step.FLASHING)

    async def _flash_device(self) -> None:
        self.state.progress.set(0)
        with translate_errors(ErrorCode.FLASH_FAILED, "Flashing"):
            current_slot = Slot.parse(await self.device.get_active_slot())
            target_slot = current_slot.other

            # A half-written bootloader must never boot: drop the current one
            # so an interrupted flash falls back to recovery mode.
            await self.device.erase(f"{BOOTLOADER_PARTITION}_{current_slot.value}")

            for image, on_progress in with_progress(
                self.manifest, self.state.progress.set, weight=_image_weight
            ):
                payload = await self.image_worker.get_image(image)

                self.state.set_message(f"Flashing {image.name}")
                partition_name = f"{image.name}_{target_slot.value}"
                await self.device.flash_blob(partition_name, payload, on_progress)

            self.state.set_message(f"Changing slot to {target_slot.value}")
            await self.device.set_active_slot(target_slot.value)

        self.logger.debug(f"Flashed all images to slot {target_slot.value}")
        self.state.advance_to(Step.ERASING)

    async def _erase_device(self) -> None:
        self.state.progress.set(0)
        with translate_errors(ErrorCode.ERASE_FAILED, "Erase"):
            self.state.set_message("Erasing userdata")
            await self.device.flash_blob(USERDATA_PARTITION, build_reset_payload())
            self.state.progress.set(0.9)

            self.state.set_message("Rebooting")
            await self.device.reset()
            self.state.progress.set(1)
            self.state.connected.set(False)
