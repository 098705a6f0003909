"""Manifest data models for firmware releases."""

from typing import Optional
from pydantic import BaseModel, Field, field_validator


class ImageDescriptor(BaseModel):
    """Image entry in the release manifest.

    Represents a single partition image to download, unpack and flash.
    """

    name: str = Field(
        ...,
        pattern=r"^[A-Za-z0-9_.-]+$",
        description="Partition base name (e.g., 'boot'), suffixed with the slot when flashed",
    )
    archive_url: str = Field(
        ...,
        alias="archiveUrl",
        pattern=r"^https?://.+",
        description="HTTP/HTTPS URL of the compressed image",
    )
    hash: str = Field(
        ...,
        pattern=r"^[a-f0-9]{64}$",
        description="Expected SHA-256 of the unpacked image",
    )
    hash_raw: Optional[str] = Field(
        None,
        pattern=r"^[a-f0-9]{64}$",
        description="Expected SHA-256 of the raw (non-sparse) image",
    )
    size: int = Field(..., gt=0, description="Unpacked image size in bytes")
    sparse: bool = Field(default=False, description="Image is in Android sparse format")
    has_ab: bool = Field(default=True, description="Partition exists once per slot")

    model_config = {"populate_by_name": True}

    @property
    def archive_name(self) -> str:
        """Filename component of the archive URL."""
        return self.archive_url.rsplit("/", 1)[-1]


class Manifest(BaseModel):
    """Release manifest: the ordered list of images to flash."""

    images: list[ImageDescriptor] = Field(
        ..., min_length=1, description="Images in flashing order"
    )

    @field_validator("images")
    @classmethod
    def unique_image_names(cls, v: list[ImageDescriptor]) -> list[ImageDescriptor]:
        """Ensure image names are unique."""
        names = [image.name for image in v]
        if len(names) != len(set(names)):
            raise ValueError("Image names must be unique")
        return v
