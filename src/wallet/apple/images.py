"""Image assets for Apple Wallet passes.

Templates store their images base64-encoded, per asset and per screen
density. This module turns them into the ``<asset>[@2x|@3x].png`` files that
go into the pass package. Images are expected to be pre-sized; they are only
checked to be PNGs, never resized.
"""

import base64
import binascii
import io
import re
from typing import Any

import structlog
from PIL import Image, UnidentifiedImageError

from wallet.exceptions import MissingRequiredAssetError, TemplateInvalidError

logger = structlog.get_logger(__name__)

ASSET_NAMES = ("icon", "logo", "strip", "background", "thumbnail")

# Density bucket -> file name suffix.
DENSITY_SUFFIXES: dict[str, str] = {
    "1x": "",
    "2x": "@2x",
    "3x": "@3x",
}

DATA_URL_PREFIX = re.compile(r"^data:image/[a-zA-Z0-9.+-]+;base64,")


def asset_filename(asset: str, density: str) -> str:
    """File name for an asset at a density, e.g. ``("logo", "2x") -> "logo@2x.png"``."""
    return f"{asset}{DENSITY_SUFFIXES[density]}.png"


def decode_image(encoded: str, filename: str) -> bytes:
    """Decode one base64 image and check that it is a PNG.

    Args:
        encoded: Base64 data, optionally as a ``data:image/...;base64,`` URL.
        filename: The target file name (for error messages).

    Returns:
        The PNG bytes.

    Raises:
        TemplateInvalidError: If the data is not valid base64 or not a PNG.
    """
    # Line-wrapped base64 is accepted
    payload = "".join(DATA_URL_PREFIX.sub("", encoded.strip()).split())
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise TemplateInvalidError(f"Image {filename} is not valid base64") from e

    try:
        with Image.open(io.BytesIO(data)) as img:
            image_format = img.format
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise TemplateInvalidError(f"Image {filename} is not a readable image") from e

    if image_format != "PNG":
        raise TemplateInvalidError(f"Image {filename} must be a PNG, got {image_format}")
    return data


def decode_template_images(images: dict[str, Any] | None) -> dict[str, bytes]:
    """Decode a template's image map into pass package files.

    Each asset is either a ``{"1x": ..., "2x": ..., "3x": ...}`` map of base64
    strings or a single base64 string, which is treated as the 1x image.
    Missing densities are skipped.

    Args:
        images: The template's image map.

    Returns:
        Mapping of file name (``icon.png``, ``logo@2x.png``, ...) to bytes.

    Raises:
        MissingRequiredAssetError: If there is no 1x icon.
        TemplateInvalidError: If an asset is unknown or cannot be decoded.
    """
    images = images or {}
    files: dict[str, bytes] = {}

    for asset, value in images.items():
        if asset not in ASSET_NAMES:
            raise TemplateInvalidError(f"Unknown image asset: {asset}")
        if not value:
            continue

        buckets = {"1x": value} if isinstance(value, str) else value
        if not isinstance(buckets, dict):
            raise TemplateInvalidError(f"Image asset {asset} must be a string or a density map")

        for density, encoded in buckets.items():
            if density not in DENSITY_SUFFIXES:
                raise TemplateInvalidError(f"Unknown density {density!r} for image asset {asset}")
            if not encoded:
                continue
            if not isinstance(encoded, str):
                raise TemplateInvalidError(f"Image asset {asset} at {density} must be a base64 string")
            filename = asset_filename(asset, density)
            files[filename] = decode_image(encoded, filename)

    if "icon.png" not in files:
        raise MissingRequiredAssetError("Template has no icon image")

    logger.debug("template_images_decoded", files=sorted(files))
    return files
