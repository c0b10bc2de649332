class CurrencyException(Exception):
    pass


class InvalidCurrencyError(CurrencyException):
    pass


class ProviderError(CurrencyException):
    def __init__(self, message: str, provider_name: str | None = None):
        self.provider_name = provider_name
        super().__init__(message)


class TransportError(ProviderError):
    """Connection failure or timeout talking to an upstream endpoint"""
    pass


class HttpStatusError(ProviderError):
    def __init__(self, message: str, status_code: int, provider_name: str | None = None):
        self.status_code = status_code
        super().__init__(message, provider_name)


class ValidationError(ProviderError):
    """Upstream body did not contain a usable rate table"""
    pass


class FetchError(CurrencyException):
    """Raised when every endpoint failed in every retry round"""

    def __init__(self, message: str, errors: list[ProviderError] | None = None):
        self.errors = errors or []
        super().__init__(message)

    @property
    def last_error(self) -> ProviderError | None:
        return self.errors[-1] if self.errors else None


class CacheError(CurrencyException):
    pass


class CacheIOError(CacheError):
    pass
