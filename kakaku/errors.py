"""Exception types shared across the package."""

from __future__ import annotations


class ConfigurationError(ValueError):
    """A required credential or setting is missing or still a placeholder."""


class AuthRequiredError(ConfigurationError):
    """The AI service rejected or lacks credentials; the user must set them up."""


class ExtractionError(RuntimeError):
    """Receipt extraction failed or returned unusable data."""


class RateLimitError(ExtractionError):
    """The AI service kept rate limiting after all retries."""


class SaveError(RuntimeError):
    """A write to the price database failed; nothing was persisted."""


class EntryNotFoundError(LookupError):
    pass


class ImportNotFoundError(LookupError):
    pass
