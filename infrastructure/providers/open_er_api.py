from typing import Any

import httpx

from domain.exceptions.currency import ValidationError

from .base import RateProvider


class OpenERAPIProvider(RateProvider):
    """Fallback provider: open.er-api.com v6"""

    BASE_URL = 'https://open.er-api.com/v6/latest'

    def __init__(self, base_url: str = BASE_URL, client: httpx.AsyncClient | None = None, timeout: float = 10):
        super().__init__(base_url=base_url, name='open-er-api', client=client, timeout=timeout)

    def _check_payload(self, data: dict[str, Any]) -> None:
        if data.get('result', 'success') != 'success':
            message = data.get('error-type', data.get('message', 'Unknown error'))
            raise ValidationError(f'Open ER-API error: {message}', provider_name=self.name)
