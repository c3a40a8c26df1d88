class ServiceError(Exception):
    pass


class TranscriptionServiceError(ServiceError):
    pass


class RewriteServiceError(ServiceError):
    pass


class RewriteConfigurationError(RewriteServiceError):
    pass


class InvalidCredentialError(RewriteServiceError):
    pass


class RateLimitedError(RewriteServiceError):
    pass


class SpeechServiceError(ServiceError):
    pass


class VoiceCatalogError(ServiceError):
    pass


class NetworkTimeoutError(ServiceError):
    def __init__(self, url: str, timeout_seconds: float | None):
        super().__init__(f"Network timeout after {timeout_seconds}s: {url}")
        self.url = url
        self.timeout_seconds = timeout_seconds
