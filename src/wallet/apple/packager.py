"""Packing a signed pass payload into a .pkpass archive."""

import io
import zipfile
from pathlib import Path

import structlog

logger = structlog.get_logger(__name__)

# Fixed member timestamp so identical payloads produce identical archives.
ZIP_TIMESTAMP = (1980, 1, 1, 0, 0, 0)
FILE_MODE = 0o100644


def package_files(files: dict[str, bytes]) -> bytes:
    """Zip pass files at the archive root.

    Members are written in sorted order with a fixed timestamp, regular-file
    permissions and DEFLATE compression. Dotfiles are skipped.
    """
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        for filename in sorted(files):
            if filename.startswith("."):
                continue
            info = zipfile.ZipInfo(filename, date_time=ZIP_TIMESTAMP)
            info.compress_type = zipfile.ZIP_DEFLATED
            info.external_attr = FILE_MODE << 16
            zf.writestr(info, files[filename])
    return buffer.getvalue()


def package_directory(directory: Path) -> bytes:
    """Zip every regular file of a payload directory into a .pkpass.

    Subdirectories are not descended into and never produce entries.

    Args:
        directory: The signed payload directory.

    Returns:
        The .pkpass bytes.
    """
    files = {path.name: path.read_bytes() for path in directory.iterdir() if path.is_file()}
    archive = package_files(files)
    logger.debug("pass_packaged", file_count=len(files), size=len(archive))
    return archive
