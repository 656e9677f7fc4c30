"""Where certificate bytes live.

A certificate record points at its PKCS#12 bundle (and optionally its WWDR
intermediate) through a CertificateSource: either a blob in remote object
storage or a legacy file on local disk. The resolver materializes a source
once per request so the rest of the pipeline never sees the difference.
"""

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

import httpx
import structlog
from django.conf import settings

from wallet.exceptions import MissingCertificateError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class BlobSource:
    """Certificate bytes stored in remote blob storage."""

    url: str


@dataclass(frozen=True)
class LocalFileSource:
    """Certificate bytes stored on the local filesystem."""

    path: str


CertificateSource = BlobSource | LocalFileSource


class BlobFetcher:
    """Downloads certificate blobs over HTTPS with bearer authentication.

    Connection failures are retried by the transport; HTTP error statuses are
    not retried.
    """

    def __init__(
        self,
        token: str | None = None,
        timeout: float | None = None,
        retries: int | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the fetcher.

        Args:
            token: Bearer token for the blob store.
            timeout: Request timeout in seconds.
            retries: Connection retries performed by the transport.
            transport: Custom transport (used by tests).

        Unset arguments are read from Django settings.
        """
        self.token = token if token is not None else settings.WALLET_BLOB_TOKEN
        self.timeout = timeout if timeout is not None else settings.WALLET_BLOB_TIMEOUT
        self.retries = retries if retries is not None else settings.WALLET_BLOB_RETRIES
        self._transport = transport

    def _get_client(self) -> httpx.Client:
        transport = self._transport or httpx.HTTPTransport(retries=self.retries)
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        return httpx.Client(
            transport=transport,
            headers=headers,
            timeout=httpx.Timeout(self.timeout, connect=min(self.timeout, 10.0)),
        )

    def fetch(self, url: str) -> bytes:
        """Download a blob.

        Args:
            url: HTTPS URL of the blob.

        Returns:
            The blob content.

        Raises:
            MissingCertificateError: If the URL is not HTTPS or the download fails.
        """
        if not url.startswith("https://"):
            raise MissingCertificateError(f"Certificate blob URL must use HTTPS: {url}")

        try:
            with self._get_client() as client:
                response = client.get(url)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error("certificate_blob_fetch_failed", status=e.response.status_code)
            raise MissingCertificateError(f"Certificate blob returned status {e.response.status_code}") from e
        except httpx.RequestError as e:
            logger.error("certificate_blob_request_error", error=str(e))
            raise MissingCertificateError(f"Certificate blob request failed: {e}") from e

        logger.debug("certificate_blob_fetched", size=len(response.content))
        return response.content


def load_source(source: CertificateSource, workdir: Path, fetcher: BlobFetcher, suffix: str) -> bytes:
    """Materialize the bytes behind a certificate source.

    Blobs are persisted to a uniquely named file inside ``workdir`` (owned by
    the current request) and read back from there.

    Args:
        source: Where the bytes live.
        workdir: The request's private certificate directory.
        fetcher: Downloader for blob sources.
        suffix: File suffix for the persisted blob (e.g. ".p12").

    Returns:
        The certificate bytes.

    Raises:
        MissingCertificateError: If the bytes cannot be obtained.
    """
    match source:
        case BlobSource(url=url):
            content = fetcher.fetch(url)
            fd, tmp_path = tempfile.mkstemp(suffix=suffix, dir=workdir)
            with os.fdopen(fd, "wb") as tmp_file:
                tmp_file.write(content)
            return Path(tmp_path).read_bytes()
        case LocalFileSource(path=path):
            try:
                return Path(path).read_bytes()
            except FileNotFoundError:
                raise MissingCertificateError(f"Certificate file not found: {path}")
            except OSError as e:
                raise MissingCertificateError(f"Failed to read certificate file {path}: {e}")
    raise MissingCertificateError(f"Unsupported certificate source: {source!r}")
