from typing import Any

import httpx

from domain.exceptions.currency import ValidationError

from .base import RateProvider


class ExchangeRateAPIProvider(RateProvider):
    """Primary provider: exchangerate-api.com v4, answers with a `rates` object"""

    BASE_URL = 'https://api.exchangerate-api.com/v4/latest'

    def __init__(self, base_url: str = BASE_URL, client: httpx.AsyncClient | None = None, timeout: float = 10):
        super().__init__(base_url=base_url, name='exchangerate-api', client=client, timeout=timeout)

    def _check_payload(self, data: dict[str, Any]) -> None:
        # keyed v6 endpoints report failures as {"result": "error", "error-type": ...}
        if data.get('result') == 'error':
            raise ValidationError(
                f'ExchangeRate-API error: {data.get("error-type", "Unknown error")}',
                provider_name=self.name,
            )
