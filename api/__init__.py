"""API module for the Kindergarten Assessment system."""
from .routes import reports_router, assessments_router, unwrap, ReportHTTPException
from .schemas import (
    ExportRequest,
    CreateAssessmentRequest,
    UpdateAssessmentRequest,
    AssessmentResponse,
    AssessmentListResponse,
    ErrorResponse,
)

__all__ = [
    "reports_router",
    "assessments_router",
    "unwrap",
    "ReportHTTPException",
    "ExportRequest",
    "CreateAssessmentRequest",
    "UpdateAssessmentRequest",
    "AssessmentResponse",
    "AssessmentListResponse",
    "ErrorResponse",
]
