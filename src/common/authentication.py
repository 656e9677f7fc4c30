import secrets
import typing as t

import structlog
from django.conf import settings
from django.http import HttpRequest
from ninja.security import APIKeyHeader

logger = structlog.get_logger(__name__)


class ServiceAPIKeyAuth(APIKeyHeader):
    """API key authentication for service-to-service calls.

    Callers send the shared key configured as ``WALLET_API_KEY`` in the
    ``X-API-Key`` header. When no key is configured every request is rejected.

    Usage:
        @api_controller("/passes", auth=ServiceAPIKeyAuth())
        class PassController:
            ...
    """

    param_name = "X-API-Key"

    def authenticate(self, request: HttpRequest, key: str | None) -> t.Any:
        """Check the presented key against the configured one.

        Args:
            request: The HTTP request object
            key: The value of the X-API-Key header

        Returns:
            The key if it matches, None otherwise
        """
        expected = settings.WALLET_API_KEY
        if not expected or not key:
            return None
        if not secrets.compare_digest(key.encode(), expected.encode()):
            logger.warning("api_key_rejected", path=request.path)
            return None
        return key
