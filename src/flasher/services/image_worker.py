"""Default image worker: resumable HTTP downloads and verified unpacking."""

import asyncio
import gzip
import hashlib
import logging
import lzma
from pathlib import Path
from typing import Callable

import aiofiles
import httpx

from flasher.models.manifest import ImageDescriptor
from flasher.models.status import UnpackFailureKind
from flasher.services.interfaces import ProgressCallback, UnpackError
from flasher.utils.verification import verify_sha256


class LocalImageWorker:
    """Downloads and unpacks manifest images into a local cache directory.

    Blocking decompression runs in a worker thread; its progress reports are
    handed back to the event loop, so callbacks always run on the loop
    thread. The session only reads the image paths returned by get_image.
    """

    def __init__(self, cache_dir: Path, chunk_size: int = 1024 * 1024):
        """Initialize image worker.

        Args:
            cache_dir: Directory for archives and unpacked images
            chunk_size: Download and unpack chunk size (default 1MB)
        """
        self.logger = logging.getLogger("flasher.image_worker")
        self.cache_dir = Path(cache_dir)
        self.chunk_size = chunk_size

    def archive_path(self, image: ImageDescriptor) -> Path:
        return self.cache_dir / image.archive_name

    def image_path(self, image: ImageDescriptor) -> Path:
        return self.cache_dir / f"{image.name}.img"

    async def init(self) -> None:
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.logger.info(f"Image cache: {self.cache_dir}")

    async def download_image(
        self, image: ImageDescriptor, on_progress: ProgressCallback
    ) -> None:
        """Download an image archive, resuming a partial download if present.

        Raises:
            httpx.HTTPError: If download fails
        """
        target_path = self.archive_path(image)
        if target_path.exists():
            self.logger.info(f"Archive already downloaded: {target_path.name}")
            on_progress(1.0)
            return

        part_path = target_path.with_name(target_path.name + ".part")
        bytes_downloaded = part_path.stat().st_size if part_path.exists() else 0
        if bytes_downloaded:
            self.logger.info(f"Resuming {image.name} from byte {bytes_downloaded}")

        headers = {}
        if bytes_downloaded > 0:
            headers["Range"] = f"bytes={bytes_downloaded}-"

        async with httpx.AsyncClient(timeout=30.0, follow_redirects=True) as client:
            async with client.stream("GET", image.archive_url, headers=headers) as response:
                # Range starts at the end: the last run stopped before the rename
                if bytes_downloaded and response.status_code == 416:
                    self.logger.info(f"Partial download of {image.name} is already complete")
                else:
                    response.raise_for_status()
                    bytes_downloaded = await self._write_body(
                        response, part_path, bytes_downloaded, on_progress
                    )

        part_path.replace(target_path)
        self.logger.info(f"Downloaded {image.name}: {bytes_downloaded} bytes")
        on_progress(1.0)

    async def _write_body(
        self,
        response: httpx.Response,
        part_path: Path,
        bytes_downloaded: int,
        on_progress: ProgressCallback,
    ) -> int:
        """Append the response body to part_path; returns the bytes on disk."""
        # Server ignored the Range header, start over
        if bytes_downloaded and response.status_code != 206:
            bytes_downloaded = 0

        content_length = int(response.headers.get("Content-Length", 0))
        total = bytes_downloaded + content_length
        mode = "ab" if bytes_downloaded > 0 else "wb"

        async with aiofiles.open(part_path, mode) as f:
            async for chunk in response.aiter_bytes(chunk_size=self.chunk_size):
                await f.write(chunk)
                bytes_downloaded += len(chunk)
                if total:
                    on_progress(bytes_downloaded / total)
        return bytes_downloaded

    async def unpack_image(
        self, image: ImageDescriptor, on_progress: ProgressCallback
    ) -> None:
        """Decompress an archive and check the SHA-256 of the result.

        Raises:
            UnpackError: CHECKSUM_MISMATCH if the hash differs, GENERIC otherwise
        """
        target_path = self.image_path(image)
        if target_path.exists() and verify_sha256(target_path, image.hash):
            self.logger.info(f"Image already unpacked: {target_path.name}")
            on_progress(1.0)
            return

        loop = asyncio.get_running_loop()

        def report(fraction: float) -> None:
            loop.call_soon_threadsafe(on_progress, fraction)

        try:
            await asyncio.to_thread(
                self._unpack, self.archive_path(image), target_path, image, report
            )
        except UnpackError:
            self._discard_archive(image)
            raise
        except (OSError, EOFError, lzma.LZMAError) as e:
            self._discard_archive(image)
            raise UnpackError(UnpackFailureKind.GENERIC, f"Failed to unpack {image.name}: {e}") from e

        self.logger.info(f"Unpacked {image.name}")

    def _discard_archive(self, image: ImageDescriptor) -> None:
        # A bad archive must not survive into the next attempt
        archive = self.archive_path(image)
        if archive.exists():
            self.logger.warning(f"Removing unusable archive {archive.name}")
            archive.unlink()

    def _unpack(
        self,
        source: Path,
        target: Path,
        image: ImageDescriptor,
        report: Callable[[float], None],
    ) -> None:
        if source.suffix == ".xz":
            opener = lzma.open
        elif source.suffix == ".gz":
            opener = gzip.open
        else:
            opener = open

        tmp_path = target.with_name(target.name + ".tmp")
        sha256_hash = hashlib.sha256()
        written = 0
        try:
            with opener(source, "rb") as src, open(tmp_path, "wb") as dst:
                while chunk := src.read(self.chunk_size):
                    dst.write(chunk)
                    sha256_hash.update(chunk)
                    written += len(chunk)
                    report(min(written / image.size, 1.0))

            actual = sha256_hash.hexdigest()
            if actual != image.hash:
                raise UnpackError(
                    UnpackFailureKind.CHECKSUM_MISMATCH,
                    f"Checksum mismatch for {image.name}: expected {image.hash}, got {actual}",
                )
            tmp_path.replace(target)
        finally:
            tmp_path.unlink(missing_ok=True)

    async def get_image(self, image: ImageDescriptor) -> Path:
        """Path of the unpacked image.

        Raises:
            FileNotFoundError: If the image has not been unpacked
        """
        path = self.image_path(image)
        if not path.exists():
            raise FileNotFoundError(f"Image not unpacked: {path}")
        return path
