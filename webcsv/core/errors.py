"""Domain-specific errors for webcsv."""


class WebcsvError(Exception):
    """Base error for webcsv."""


class ProfileValidationError(WebcsvError):
    """Raised when a profile file does not conform to schema or YAML rules."""


class ProfileLoadError(WebcsvError):
    """Raised when loading profile sources fails."""


class ConfigError(WebcsvError):
    """Raised when the runtime configuration cannot be read or validated."""


class UnknownServerError(WebcsvError):
    """Raised when a server id is not part of the active configuration."""


class DiscoveryError(WebcsvError):
    """Raised when no profile matches a host that must be bound."""
