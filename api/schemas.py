"""
Pydantic schemas for API requests and responses.
"""
from datetime import date
from typing import Optional, List, Any, Dict
from pydantic import BaseModel, Field

from reporting import Rating


# Request schemas
class ExportRequest(BaseModel):
    """Request to export a report as CSV or PDF."""
    requester_id: int = Field(..., description="ID of the requesting user")
    report_type: str = Field(..., description="student, student-subject, strand, outcome, class or school")
    format: str = Field(..., description="csv or pdf")
    student_id: Optional[int] = Field(None, description="Student for learner reports")
    subject_id: Optional[int] = Field(None, description="Subject for student-subject reports")
    strand_id: Optional[int] = Field(None, description="Strand for strand reports")
    outcome_id: Optional[int] = Field(None, description="Outcome for outcome reports")
    class_id: Optional[int] = Field(None, description="Class for class-scoped reports")
    school_id: Optional[int] = Field(None, description="School for school summaries")
    term_id: Optional[int] = Field(None, description="Restrict to one academic term")
    options: Optional[Dict[str, Any]] = Field(None, description="PDF options: title, include_legend")

    def report_params(self) -> Dict[str, Any]:
        """Parameters passed on to the report assembler."""
        return self.model_dump(
            include={
                "student_id", "subject_id", "strand_id", "outcome_id",
                "class_id", "school_id", "term_id",
            }
        )


class CreateAssessmentRequest(BaseModel):
    """Request to record an assessment."""
    requester_id: int = Field(..., description="ID of the user recording the assessment")
    student_id: int = Field(..., description="ID of the student")
    learning_outcome_id: int = Field(..., description="ID of the learning outcome")
    term_id: int = Field(..., description="ID of the academic term")
    rating: Rating = Field(..., description="Achievement rating")
    assessment_date: Optional[date] = Field(None, description="Defaults to today")
    comment: Optional[str] = Field(None, description="Teacher's comment")


class UpdateAssessmentRequest(BaseModel):
    """Request to change an assessment. Only provided fields are changed."""
    requester_id: int = Field(..., description="ID of the requesting user")
    rating: Optional[Rating] = Field(None, description="New rating")
    assessment_date: Optional[date] = Field(None, description="New assessment date")
    comment: Optional[str] = Field(None, description="New comment")

    def changes(self) -> Dict[str, Any]:
        data = self.model_dump(exclude_unset=True, exclude={"requester_id"})
        # comment may be cleared; rating and date may not
        data = {k: v for k, v in data.items() if v is not None or k == "comment"}
        if "rating" in data:
            data["rating"] = Rating(data["rating"]).value
        return data


# Response schemas
class AssessmentResponse(BaseModel):
    """Single assessment response."""
    id: int
    student_id: int
    learning_outcome_id: int
    term_id: int
    assessment_date: date
    rating: str
    comment: Optional[str]
    assessed_by: Optional[int]
    created_by: Optional[int]
    assessor_name: Optional[str] = None


class AssessmentListResponse(BaseModel):
    """List of assessments response."""
    total: int
    assessments: List[AssessmentResponse]


class ErrorResponse(BaseModel):
    """Error response."""
    detail: str
    error_type: Optional[str] = None
    field: Optional[str] = None
