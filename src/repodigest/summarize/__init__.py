"""Highlights for work units: rule-based, with an optional custom hook."""
from .degrade import SummaryOutcome, summarize_with_fallback, with_timeout
from .highlights import first_sentence, summarize_work_unit

__all__ = [
    'SummaryOutcome',
    'summarize_with_fallback',
    'with_timeout',
    'first_sentence',
    'summarize_work_unit',
]
