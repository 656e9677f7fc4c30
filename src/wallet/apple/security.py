"""Guards that keep signing material out of generated passes.

A .pkpass is handed to end users and is trivially unzipped, so the private
key and certificates used to sign it must never end up inside it: neither as
a file in the archive nor as a value inside pass.json.
"""

import re
import typing as t
from collections.abc import Iterable
from pathlib import Path

import structlog

from wallet.exceptions import ForbiddenFileSecurityError

logger = structlog.get_logger(__name__)

FORBIDDEN_EXTENSION_PATTERN = re.compile(r"\.(pem|key|p12|cer|crt|der)$", re.IGNORECASE)

FORBIDDEN_FILENAMES = frozenset({"pass-cert.pem", "pass-key.pem", "certificate.p12", "wwdr.cer"})

FORBIDDEN_KEYS = frozenset(
    {
        "certificate",
        "certificatePem",
        "privateKey",
        "privateKeyPem",
        "p12",
        "p12Base64",
        "wwdr",
        "wwdrCert",
        "certificate_chain",
    }
)


def is_forbidden_filename(name: str) -> bool:
    """Whether a file name looks like certificate or key material."""
    basename = Path(name).name
    return basename in FORBIDDEN_FILENAMES or bool(FORBIDDEN_EXTENSION_PATTERN.search(basename))


def assert_no_forbidden_files(names: Iterable[str]) -> None:
    """Fail if any name could carry signing material.

    Raises:
        ForbiddenFileSecurityError: On the first forbidden name.
    """
    for name in names:
        if is_forbidden_filename(name):
            logger.error("forbidden_file_in_pass", filename=name)
            raise ForbiddenFileSecurityError(f"Refusing to package forbidden file: {name}")


def assert_directory_clean(directory: Path) -> list[str]:
    """Check a payload directory right before it is packaged.

    Returns:
        The names of the files in the directory.

    Raises:
        ForbiddenFileSecurityError: If a forbidden file is present.
    """
    names = sorted(path.name for path in directory.iterdir())
    assert_no_forbidden_files(names)
    return names


def scrub_forbidden_keys(document: t.Any, path: str = "") -> t.Any:
    """Remove signing-material keys from a JSON tree, at any depth.

    Mutates and returns ``document``. Every removal is logged.
    """
    if isinstance(document, dict):
        for key in [k for k in document if k in FORBIDDEN_KEYS]:
            del document[key]
            logger.warning("forbidden_key_scrubbed", key=key, path=path or "$")
        for key, value in document.items():
            scrub_forbidden_keys(value, f"{path}.{key}" if path else key)
    elif isinstance(document, list):
        for index, item in enumerate(document):
            scrub_forbidden_keys(item, f"{path}[{index}]")
    return document
