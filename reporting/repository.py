"""
Query contract the reporting engine depends on.

Implementations raise `RepositoryError` when the underlying store fails;
a missing entity is reported by returning None, never by raising.
"""
from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Dict, List, Optional

from .records import (
    AssessmentFilter,
    AssessmentRecord,
    ClassRecord,
    OutcomeRecord,
    SchoolRecord,
    StrandRecord,
    StudentRecord,
    SubjectRecord,
    TermRecord,
    UserRecord,
)


class AssessmentRepository(ABC):
    """Read (and minimal write) access to the assessment store."""

    # Lookups

    @abstractmethod
    def get_user(self, user_id: int) -> Optional[UserRecord]:
        ...

    @abstractmethod
    def get_school(self, school_id: int) -> Optional[SchoolRecord]:
        ...

    @abstractmethod
    def get_class(self, class_id: int) -> Optional[ClassRecord]:
        ...

    @abstractmethod
    def get_student(self, student_id: int) -> Optional[StudentRecord]:
        ...

    @abstractmethod
    def get_subject(self, subject_id: int) -> Optional[SubjectRecord]:
        ...

    @abstractmethod
    def get_strand(self, strand_id: int) -> Optional[StrandRecord]:
        ...

    @abstractmethod
    def get_outcome(self, outcome_id: int) -> Optional[OutcomeRecord]:
        ...

    @abstractmethod
    def get_term(self, term_id: int) -> Optional[TermRecord]:
        ...

    @abstractmethod
    def get_assessment(self, assessment_id: int) -> Optional[AssessmentRecord]:
        ...

    # Lists

    @abstractmethod
    def list_outcomes(
        self,
        subject_id: Optional[int] = None,
        strand_id: Optional[int] = None,
    ) -> List[OutcomeRecord]:
        """Outcomes ordered by subject, strand and outcome display order."""

    @abstractmethod
    def list_strands(self, subject_id: int) -> List[StrandRecord]:
        """Strands of a subject in display order."""

    @abstractmethod
    def list_students(
        self,
        school_id: Optional[int] = None,
        class_id: Optional[int] = None,
        active: Optional[bool] = True,
    ) -> List[StudentRecord]:
        """Students ordered by last name, then first name."""

    @abstractmethod
    def list_classes(self, school_id: int) -> List[ClassRecord]:
        ...

    @abstractmethod
    def find_assessments(self, filters: AssessmentFilter) -> List[AssessmentRecord]:
        """Assessments matching every given filter, ordered by date then id."""

    # Writes

    @abstractmethod
    def add_assessment(
        self,
        student_id: int,
        learning_outcome_id: int,
        term_id: int,
        assessment_date: date,
        rating: str,
        comment: Optional[str],
        assessed_by: int,
        created_by: int,
    ) -> AssessmentRecord:
        ...

    @abstractmethod
    def update_assessment(self, assessment_id: int, changes: Dict[str, Any]) -> AssessmentRecord:
        ...

    @abstractmethod
    def delete_assessment(self, assessment_id: int) -> None:
        ...
