"""Client for the external valid-pairs API."""

import logging

import httpx
from fastapi import Request

from userapi.config import get_settings
from userapi.services.errors import TransportError

logger = logging.getLogger(__name__)


class PairsClient:
    """Fetches the trading pairs that may be subscribed to. Nothing is cached."""

    def __init__(
        self,
        url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url or get_settings().valid_pairs_url
        # None leaves the request bounded only by the per-request deadline
        self.timeout = timeout
        self.transport = transport

    async def fetch_valid_pairs(self) -> list[str]:
        """Return the current list of valid pairs."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(self.url)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            logger.error(f"HTTP error fetching valid pairs from {self.url}: {e}")
            raise TransportError(f"unable to fetch valid pairs: {e}") from e
        except ValueError as e:
            logger.error(f"Valid pairs response is not JSON: {e}")
            raise TransportError("unable to decode valid pairs") from e

        if not isinstance(data, list) or not all(isinstance(p, str) for p in data):
            logger.error(f"Unexpected valid pairs payload: {str(data)[:200]}")
            raise TransportError("unable to decode valid pairs")

        return data


def get_pairs_client(request: Request) -> PairsClient:
    """Get a valid-pairs client for the configured endpoint."""
    return PairsClient(url=request.app.state.settings.valid_pairs_url)
