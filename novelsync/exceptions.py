class NovelSyncError(Exception):
    """Base exception for NovelSync errors."""
    pass


class ConfigurationError(NovelSyncError):
    """Raised when the repository configuration is missing or was rejected."""
    pass


class CrawlStateError(NovelSyncError):
    """Raised when a crawl operation is not valid in the current session state."""
    pass


class InvalidTransition(CrawlStateError):
    """Raised when a chapter is moved through a status change it does not allow."""
    pass
