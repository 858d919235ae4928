"""Activity collectors and fetch windows."""
from .errors import CollectorError
from .git import GitLogCollector, parse_git_log_output
from .github import GitHubCollector, normalize_github_data
from .window import TimeWindow, resolve_time_window

__all__ = [
    'CollectorError',
    'GitLogCollector',
    'parse_git_log_output',
    'GitHubCollector',
    'normalize_github_data',
    'TimeWindow',
    'resolve_time_window',
]
