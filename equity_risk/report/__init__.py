"""
Report assembly module.

Provides:
- Per-symbol analysis pipeline with stage failure tracking
- Summary and model comparison tables
- Plotly charts and HTML/CSV report output
"""

from .builder import ReportBuilder, Report, SymbolAnalysis, StageFailure, STAGES
from .writer import ReportWriter

__all__ = [
    "ReportBuilder",
    "Report",
    "SymbolAnalysis",
    "StageFailure",
    "STAGES",
    "ReportWriter",
]
