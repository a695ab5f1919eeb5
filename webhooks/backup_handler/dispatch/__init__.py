"""
Dispatch of decoded webhook reports.

Classifies each report and drives the backup API and the publisher
through one request. See dispatcher.py for the ordering guarantees.
"""

from .dispatcher import Branch, DispatchResult, Dispatcher, classify

__all__ = [
    "Branch",
    "DispatchResult",
    "Dispatcher",
    "classify",
]
