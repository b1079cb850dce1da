"""paperlens package exports for the analysis session controller."""

from .core.errors import Failure, FailureKind
from .core.rasterizer import RasterizationResult, SourceDocument, rasterize_documents, rasterize_pdf
from .services.quota import QuotaDecision, QuotaTracker, UsageKind
from .services.session import AnalysisSessionController, AppState, RunOutcome

__all__ = [
    "AnalysisSessionController",
    "AppState",
    "Failure",
    "FailureKind",
    "QuotaDecision",
    "QuotaTracker",
    "RasterizationResult",
    "RunOutcome",
    "SourceDocument",
    "UsageKind",
    "rasterize_documents",
    "rasterize_pdf",
]
