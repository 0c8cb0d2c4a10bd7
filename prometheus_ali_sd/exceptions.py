"""Custom exception hierarchy for the service discovery tool."""


class DiscoveryError(Exception):
    """Base exception for all tool errors."""


class ConfigError(DiscoveryError):
    """Invalid or missing configuration."""


class SourceError(DiscoveryError):
    """Error fetching instances or networks from the cloud provider."""

    def __init__(self, message: str, code: str | None = None, request_id: str | None = None):
        super().__init__(message)
        self.code = code
        self.request_id = request_id


class EncodingError(DiscoveryError):
    """The target groups could not be serialized."""


class WriteError(DiscoveryError):
    """The output document could not be written."""

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path


class PatternError(DiscoveryError):
    """A scope pattern failed to compile. Non-fatal: the pattern never matches."""

    def __init__(self, message: str, pattern: str):
        super().__init__(message)
        self.pattern = pattern
