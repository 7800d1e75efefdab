"""Exception types shared across the scraper."""


class ConfigError(Exception):
    """Raised when an environment setting cannot be parsed."""
    pass


class SourceNotFoundError(Exception):
    """Raised when a source id is unknown or the source is disabled."""
    pass


class FetchError(Exception):
    """Raised by the orchestrator when a source produced no content."""
    pass


class EntityValidationError(ValueError):
    """Raised when a partial entity is missing fields required for persistence."""
    pass


class ModelServiceError(Exception):
    """Raised when the hosted model service fails or returns an unexpected shape."""
    pass
