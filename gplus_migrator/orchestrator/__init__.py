"""
Orchestration package for the import and update runs.

This package walks the loaded Google+ feeds, applies the import or update
strategy to every post and comment, and reports the outcome.
"""

from .reconciliation_driver import ReconciliationDriver
from .run_report import RunReport, format_usermap_suggestions

__all__ = [
    'ReconciliationDriver',
    'RunReport',
    'format_usermap_suggestions'
]
