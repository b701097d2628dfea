"""Shared httpx plumbing for generative API clients."""

from abc import ABC, abstractmethod
from typing import Optional

import httpx

from ..utils.errors import TransientExternalFailure
from ..utils.logger import get_logger

logger = get_logger(__name__)


class BaseProvider(ABC):
    """
    Owns one ``httpx.AsyncClient`` per provider.

    Use as an async context manager, or call ``initialize``/``close`` from the
    application lifespan. Subclasses supply auth headers and map HTTP failures
    onto the studio's error taxonomy in ``_handle_response_errors``.
    """

    provider_name = "provider"

    def __init__(
        self,
        api_key: str,
        base_url: str,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            api_key: API key sent with every request
            base_url: Root URL the endpoint paths are joined to
            timeout: Per-request timeout in seconds
            transport: Custom httpx transport (tests pass a MockTransport)
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport
        self.client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def initialize(self):
        if self.client is not None:
            return

        self.client = httpx.AsyncClient(
            timeout=self.timeout,
            headers=self._get_default_headers(),
            transport=self.transport,
        )
        logger.info(
            f"{self.provider_name} client ready",
            extra={"provider": self.provider_name, "base_url": self.base_url}
        )

    async def close(self):
        if self.client is None:
            return

        await self.client.aclose()
        self.client = None
        logger.info(f"{self.provider_name} client closed", extra={"provider": self.provider_name})

    @abstractmethod
    def _get_default_headers(self) -> dict:
        """Auth and content headers for every request."""

    @abstractmethod
    def _handle_response_errors(self, response: httpx.Response):
        """Raise the matching studio error for a failed response."""

    def _ensure_client(self):
        if self.client is None:
            raise RuntimeError(
                f"{self.__class__.__name__} not initialized. "
                "Call initialize() or use as async context manager."
            )

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        """
        Send a request to ``base_url + path``.

        Connection failures and timeouts are reported as transient.
        """
        self._ensure_client()
        try:
            response = await self.client.request(method, f"{self.base_url}/{path.lstrip('/')}", **kwargs)
        except httpx.TransportError as e:
            raise TransientExternalFailure(self.provider_name, f"Service unavailable: {e}")

        self._handle_response_errors(response)
        return response
