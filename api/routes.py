"""
API routes for the Kindergarten Assessment system.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from config import settings
from database import get_db, SqlAssessmentRepository
from reporting import (
    AssessmentFilter,
    ErrorKind,
    ReportAssembler,
    ReportError,
    Result,
    change_assessment,
    export_report,
    list_assessments,
    load_actor,
    record_assessment,
    remove_assessment,
)
from .schemas import (
    ExportRequest,
    CreateAssessmentRequest,
    UpdateAssessmentRequest,
    AssessmentResponse,
    AssessmentListResponse,
    ErrorResponse,
)

logger = logging.getLogger(__name__)

STATUS_CODES = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.VALIDATION: 400,
    ErrorKind.INTERNAL: 500,
}


ERROR_RESPONSES = {
    status: {"model": ErrorResponse}
    for status in (400, 403, 404)
}


# Router for report endpoints
reports_router = APIRouter(prefix="/reports", tags=["Reports"], responses=ERROR_RESPONSES)

# Router for assessment endpoints
assessments_router = APIRouter(prefix="/assessments", tags=["Assessments"], responses=ERROR_RESPONSES)


class ReportHTTPException(HTTPException):
    """HTTPException that keeps the originating `ReportError`."""

    def __init__(self, error: ReportError):
        super().__init__(status_code=STATUS_CODES[error.kind], detail=error.message)
        self.error = error

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(
            detail=self.error.message,
            error_type=self.error.kind.value,
            field=self.error.field,
        )


def unwrap(result: Result):
    """Return the result's value or raise the matching ReportHTTPException."""
    if result.ok:
        return result.value
    raise ReportHTTPException(result.error)


def _context(db: Session, requester_id: int):
    repository = SqlAssessmentRepository(db)
    actor = unwrap(load_actor(repository, requester_id))
    return repository, actor


def _assessment_response(record) -> AssessmentResponse:
    return AssessmentResponse(**record.to_dict(), assessor_name=record.assessor_name)


# ============== Report Endpoints ==============

@reports_router.get("/student/{student_id}")
async def get_student_report(
    student_id: int,
    requester_id: int,
    term_id: Optional[int] = None,
    db: Session = Depends(get_db),
):
    """
    Student report: one learner across every subject.

    Teachers and admins see students in their schools; parents see
    linked students only.
    """
    repository, actor = _context(db, requester_id)
    return unwrap(ReportAssembler(repository).student_report(actor, student_id, term_id))


@reports_router.get("/student/{student_id}/subject/{subject_id}")
async def get_student_subject_report(
    student_id: int,
    subject_id: int,
    requester_id: int,
    term_id: Optional[int] = None,
    db: Session = Depends(get_db),
):
    """Student report for one subject, with one column per assessment date."""
    repository, actor = _context(db, requester_id)
    return unwrap(
        ReportAssembler(repository).student_subject_report(actor, student_id, subject_id, term_id)
    )


@reports_router.get("/strand/{strand_id}")
async def get_strand_report(
    strand_id: int,
    requester_id: int,
    class_id: Optional[int] = None,
    term_id: Optional[int] = None,
    db: Session = Depends(get_db),
):
    """Strand report: every student of a class against the strand's outcomes."""
    repository, actor = _context(db, requester_id)
    return unwrap(ReportAssembler(repository).strand_report(actor, strand_id, class_id, term_id))


@reports_router.get("/outcome/{outcome_id}")
async def get_outcome_report(
    outcome_id: int,
    requester_id: int,
    class_id: Optional[int] = None,
    term_id: Optional[int] = None,
    db: Session = Depends(get_db),
):
    """Outcome report: every student of a class against one outcome."""
    repository, actor = _context(db, requester_id)
    return unwrap(ReportAssembler(repository).outcome_report(actor, outcome_id, class_id, term_id))


@reports_router.get("/class/{class_id}/summary")
async def get_class_summary(
    class_id: int,
    requester_id: int,
    term_id: Optional[int] = None,
    db: Session = Depends(get_db),
):
    """Class summary. Teachers only for their own classes."""
    repository, actor = _context(db, requester_id)
    return unwrap(ReportAssembler(repository).class_summary(actor, class_id, term_id))


@reports_router.get("/school/{school_id}/summary")
async def get_school_summary(
    school_id: int,
    requester_id: int,
    term_id: Optional[int] = None,
    db: Session = Depends(get_db),
):
    """School summary (admins only)."""
    repository, actor = _context(db, requester_id)
    return unwrap(ReportAssembler(repository).school_summary(actor, school_id, term_id))


@reports_router.post("/export")
async def export_report_endpoint(request: ExportRequest, db: Session = Depends(get_db)):
    """
    Export a report as CSV or PDF.

    The report is rebuilt server-side under the requester's access
    scope; client-supplied report data is never rendered.
    """
    repository, actor = _context(db, request.requester_id)
    report = unwrap(
        ReportAssembler(repository).build(actor, request.report_type, request.report_params())
    )
    exported = unwrap(export_report(
        request.report_type,
        report,
        request.format,
        options=request.options,
        page_size=settings.export_pdf_page_size,
    ))
    return Response(
        content=exported.content,
        media_type=exported.content_type,
        headers={"Content-Disposition": f'attachment; filename="{exported.filename}"'},
    )


# ============== Assessment Endpoints ==============

@assessments_router.get("/", response_model=AssessmentListResponse)
async def get_assessments(
    requester_id: int,
    student_id: Optional[int] = None,
    class_id: Optional[int] = None,
    school_id: Optional[int] = None,
    term_id: Optional[int] = None,
    subject_id: Optional[int] = None,
    strand_id: Optional[int] = None,
    outcome_id: Optional[int] = None,
    db: Session = Depends(get_db),
):
    """
    List assessments with filters.

    Records outside the requester's scope are left out of the list.
    """
    repository, actor = _context(db, requester_id)
    filters = AssessmentFilter(
        student_ids=frozenset({student_id}) if student_id else None,
        class_id=class_id,
        school_id=school_id,
        term_id=term_id,
        subject_id=subject_id,
        strand_id=strand_id,
        outcome_id=outcome_id,
    )
    assessments = unwrap(list_assessments(repository, actor, filters))
    return AssessmentListResponse(
        total=len(assessments),
        assessments=[_assessment_response(a) for a in assessments],
    )


@assessments_router.post("/", response_model=AssessmentResponse, status_code=201)
async def create_assessment(request: CreateAssessmentRequest, db: Session = Depends(get_db)):
    """Record an assessment (teachers and admins)."""
    repository, actor = _context(db, request.requester_id)
    created = unwrap(record_assessment(
        repository,
        actor,
        student_id=request.student_id,
        learning_outcome_id=request.learning_outcome_id,
        term_id=request.term_id,
        rating=request.rating.value,
        assessment_date=request.assessment_date,
        comment=request.comment,
    ))
    return _assessment_response(created)


@assessments_router.patch("/{assessment_id}", response_model=AssessmentResponse)
async def update_assessment(
    assessment_id: int,
    request: UpdateAssessmentRequest,
    db: Session = Depends(get_db),
):
    """Change an assessment. Only its creator or an admin may do so."""
    repository, actor = _context(db, request.requester_id)
    updated = unwrap(change_assessment(repository, actor, assessment_id, request.changes()))
    return _assessment_response(updated)


@assessments_router.delete("/{assessment_id}", status_code=204)
async def delete_assessment(assessment_id: int, requester_id: int, db: Session = Depends(get_db)):
    """Delete an assessment. Only its creator or an admin may do so."""
    repository, actor = _context(db, requester_id)
    unwrap(remove_assessment(repository, actor, assessment_id))
    return Response(status_code=204)
