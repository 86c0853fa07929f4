"""
Form services.

This package contains business logic for:
- Form lifecycle, sharing and ordering (FormService)
- Question reconciliation on form updates (QuestionReconciler)
- Response submission, reads and statistics (ResponseService, ResponseAggregator)
- Spreadsheet export of responses (ExportService)
"""

from .aggregation import ResponseAggregator
from .export import ExportFormatter, ExportService
from .forms import FormService
from .reconciler import QuestionReconciler
from .responses import ResponseService

__all__ = [
    "ExportFormatter",
    "ExportService",
    "FormService",
    "QuestionReconciler",
    "ResponseAggregator",
    "ResponseService",
]
