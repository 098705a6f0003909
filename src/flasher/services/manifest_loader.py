"""Release manifest retrieval and parsing."""

import json
import logging
from pathlib import Path

import aiofiles
import httpx
from pydantic import ValidationError

from flasher.models.manifest import ImageDescriptor, Manifest


class ManifestError(Exception):
    """Raised when a manifest cannot be fetched, parsed, or is empty."""


class ManifestLoader:
    """Loads the ordered image list of a firmware release."""

    def __init__(self, timeout: float = 30.0):
        """Initialize manifest loader.

        Args:
            timeout: HTTP timeout in seconds
        """
        self.logger = logging.getLogger("flasher.manifest")
        self.timeout = timeout

    async def load(self, url: str) -> list[ImageDescriptor]:
        """Fetch and parse a manifest.

        Args:
            url: HTTP/HTTPS URL, or a local file path

        Returns:
            Images in flashing order (never empty)

        Raises:
            ManifestError: If the manifest cannot be fetched or is invalid
        """
        self.logger.info(f"Loading manifest from {url}")

        if url.startswith(("http://", "https://")):
            try:
                async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
                    response = await client.get(url)
                    response.raise_for_status()
                    text = response.text
            except httpx.HTTPError as e:
                raise ManifestError(f"Failed to download manifest: {e}") from e
        else:
            try:
                async with aiofiles.open(Path(url), "r", encoding="utf-8") as f:
                    text = await f.read()
            except OSError as e:
                raise ManifestError(f"Failed to read manifest: {e}") from e

        return self.parse(text)

    def parse(self, text: str) -> list[ImageDescriptor]:
        """Parse manifest JSON.

        Accepts either a bare array of images or an object with an "images" array.

        Raises:
            ManifestError: If the JSON is invalid, empty, or fails validation
        """
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ManifestError(f"Invalid manifest JSON: {e}") from e

        if isinstance(data, dict):
            data = data.get("images")
        if not isinstance(data, list):
            raise ManifestError("Manifest must be a list of images")
        if not data:
            raise ManifestError("Manifest is empty")

        try:
            manifest = Manifest(images=data)
        except ValidationError as e:
            raise ManifestError(f"Invalid manifest: {e}") from e

        self.logger.info(f"Manifest loaded: {len(manifest.images)} images")
        return manifest.images
