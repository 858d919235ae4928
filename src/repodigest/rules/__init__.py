"""Priority-chain rules for due dates and status."""
from .due import DueResolution, resolve_due
from .status import classify_status

__all__ = ['DueResolution', 'resolve_due', 'classify_status']
