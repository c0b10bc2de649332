import logging
from typing import Any

import httpx

from domain.exceptions.currency import HttpStatusError, TransportError, ValidationError

logger = logging.getLogger(__name__)


class RateProvider:
    """A latest-rates endpoint of the form {base_url}/{BASE}, handling common HTTP logic."""

    def __init__(
        self,
        base_url: str,
        name: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10,
    ):
        self.base_url = base_url.rstrip('/')
        self._name = name
        self.timeout = timeout
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            headers={'accept': 'application/json', 'cache-control': 'no-cache'},
            limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
        )

    @property
    def name(self) -> str:
        return self._name

    def build_url(self, base_currency: str) -> str:
        return f'{self.base_url}/{base_currency}'

    async def fetch_latest(self, base_currency: str) -> dict[str, Any]:
        """Return the decoded JSON body for base_currency, or raise a ProviderError subclass."""
        url = self.build_url(base_currency)
        try:
            response = await self._client.get(url)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise HttpStatusError(
                f'{self.name} HTTP error {e.response.status_code}: {e.response.text[:200]}',
                status_code=e.response.status_code,
                provider_name=self.name,
            ) from e
        except httpx.RequestError as e:
            raise TransportError(
                f'{self.name} request failed: {e.__class__.__name__}', provider_name=self.name
            ) from e
        except ValueError as e:
            raise ValidationError(
                f'{self.name} response parsing error: {str(e)}', provider_name=self.name
            ) from e

        if not isinstance(data, dict):
            raise ValidationError(
                f'{self.name} returned {type(data).__name__}, expected an object',
                provider_name=self.name,
            )

        self._check_payload(data)
        logger.debug(f'{self.name} answered {url} with status {response.status_code}')
        return data

    def _check_payload(self, data: dict[str, Any]) -> None:
        """Hook for provider-specific error envelopes inside a 200 response."""

    async def close(self) -> None:
        await self._client.aclose()
