"""Exception taxonomy for the fetch → extract → analyze → persist flow."""

from typing import List, Optional


class NewsDigestError(Exception):
    """Base class for all newsdigest errors."""


class ConfigError(NewsDigestError):
    """Required configuration is missing. ``missing`` lists every absent key."""

    def __init__(self, missing: List[str]) -> None:
        self.missing = list(missing)
        super().__init__(f"Missing required configuration: {', '.join(self.missing)}")


class StrategyError(NewsDigestError):
    """A single fetch strategy could not retrieve the page."""

    def __init__(self, strategy: str, reason: str) -> None:
        self.strategy = strategy
        self.reason = reason
        super().__init__(f"{strategy}: {reason}")


class AnalysisError(NewsDigestError):
    """The Analyzer failed to produce a summary/sentiment."""

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        self.cause = cause
        super().__init__(message)


class PersistenceError(NewsDigestError):
    """The article store could not be read or written."""


class DiscoveryError(NewsDigestError):
    """A news source could not be read for article links."""
