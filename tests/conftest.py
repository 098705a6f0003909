"""Global pytest fixtures and configuration."""

import sys
from pathlib import Path
from typing import Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from flasher.models.manifest import ImageDescriptor  # noqa: E402
from flasher.services.recovery import RecoveryController  # noqa: E402
from flasher.services.session import FlashSession  # noqa: E402
from flasher.services.state_manager import SessionState  # noqa: E402

RECOGNIZED_PARTITIONS = ["boot", "system", "userdata", "xbl", "xbl_config", "abl"]


def make_image(name: str, size: int = 1024, digest: str = "0" * 64) -> ImageDescriptor:
    """Build an ImageDescriptor with defaults good enough for tests."""
    return ImageDescriptor(
        name=name,
        archive_url=f"https://example.com/images/{name}.img.xz",
        hash=digest,
        size=size,
    )


class FakeDevice:
    """In-memory device driver recording every call it receives."""

    def __init__(
        self,
        slot_count: int = 2,
        partitions: Optional[list] = None,
        active_slot="a",
        serial: Optional[str] = "c0ffee01",
    ):
        self.slot_count = slot_count
        self.partitions = RECOGNIZED_PARTITIONS if partitions is None else partitions
        self.active_slot = active_slot
        self.serial = serial
        self.calls: list[tuple] = []
        self.flashed: dict = {}
        self.failures: dict = {}

    def fail(self, method: str, exc: Exception) -> None:
        self.failures[method] = exc

    def _record(self, method: str, *args) -> None:
        self.calls.append((method, *args))
        if method in self.failures:
            raise self.failures[method]

    @property
    def writes(self) -> list[tuple]:
        return [c for c in self.calls if c[0] in ("erase", "flash_blob", "set_active_slot")]

    async def wait_for_connect(self):
        self._record("wait_for_connect")

    async def get_device_partitions_info(self):
        self._record("get_device_partitions_info")
        return self.slot_count, list(self.partitions)

    async def get_active_slot(self):
        self._record("get_active_slot")
        return self.active_slot

    async def set_active_slot(self, slot):
        self._record("set_active_slot", slot)
        self.active_slot = slot

    async def erase(self, partition_name):
        self._record("erase", partition_name)

    async def flash_blob(self, partition_name, payload, on_progress=None):
        self._record("flash_blob", partition_name)
        self.flashed[partition_name] = payload
        if on_progress is not None:
            on_progress(0.5)
            on_progress(1.0)

    async def reset(self):
        self._record("reset")


class FakeImageWorker:
    """Image worker that pretends to download/unpack, with optional failures."""

    def __init__(self, image_dir: Path):
        self.image_dir = image_dir
        self.downloaded: list[str] = []
        self.unpacked: list[str] = []
        self.download_failures: dict = {}
        self.unpack_failures: dict = {}
        self.init_calls = 0

    async def init(self):
        self.init_calls += 1

    async def download_image(self, image, on_progress):
        if image.name in self.download_failures:
            raise self.download_failures[image.name]
        on_progress(0.25)
        on_progress(0.75)
        self.downloaded.append(image.name)

    async def unpack_image(self, image, on_progress):
        if image.name in self.unpack_failures:
            raise self.unpack_failures[image.name]
        on_progress(0.5)
        self.unpacked.append(image.name)

    async def get_image(self, image):
        return self.image_dir / f"{image.name}.img"


@pytest.fixture(autouse=True)
def reset_singletons():
    """Give every test a fresh SessionState singleton."""
    SessionState._instance = None
    yield
    SessionState._instance = None


@pytest.fixture
def state():
    return SessionState()


@pytest.fixture
def restart():
    """Stand-in for the process restart armed as on_retry."""
    return MagicMock(name="restart")


@pytest.fixture
def device():
    return FakeDevice()


@pytest.fixture
def worker(tmp_path):
    return FakeImageWorker(tmp_path)


@pytest.fixture
def images():
    return [make_image("boot", size=4096), make_image("system", size=12288)]


@pytest.fixture
def manifest_loader(images):
    loader = MagicMock()
    loader.load = AsyncMock(return_value=images)
    return loader


@pytest.fixture
def session(device, state, restart, manifest_loader, tmp_path):
    """FlashSession wired to fakes, not yet initialized."""
    return FlashSession(
        device=device,
        manifest_url="https://example.com/manifest.json",
        storage_dir=tmp_path / "images",
        state=state,
        recovery=RecoveryController(state=state, restart=restart),
        manifest_loader=manifest_loader,
    )


@pytest.fixture
def progress_log(state):
    """Every progress value published, in order (starting with the replayed one)."""
    values = []
    state.progress.subscribe(values.append)
    return values


@pytest.fixture
def image_factory():
    return make_image


@pytest.fixture
def device_factory():
    return FakeDevice
