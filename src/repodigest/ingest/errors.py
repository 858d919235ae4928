"""
Collector error types.
"""


class CollectorError(ValueError):
    """Raised when a collector cannot fetch activity for a repository."""

    def __init__(self, message: str, repo: str = None, status_code: int = None):
        self.repo = repo
        self.status_code = status_code
        super().__init__(message)
