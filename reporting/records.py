"""
Plain records exchanged between the repository and the reporting engine.

Records are frozen dataclasses so the aggregation code can treat its
inputs as values, whatever storage produced them.
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum as PyEnum
from typing import Any, Dict, FrozenSet, List, Optional


class UserRole(str, PyEnum):
    """User roles enum."""
    SUPERUSER = "SUPERUSER"
    COUNTRY_ADMIN = "COUNTRY_ADMIN"
    SCHOOL_ADMIN = "SCHOOL_ADMIN"
    TEACHER = "TEACHER"
    PARENT_STUDENT = "PARENT_STUDENT"


class Rating(str, PyEnum):
    """Three-point ordinal scale for a single assessment."""
    EASILY_MEETING = "EASILY_MEETING"
    MEETING = "MEETING"
    NEEDS_PRACTICE = "NEEDS_PRACTICE"


@dataclass(frozen=True)
class UserRecord:
    """A stored user with the relations that decide its access scope."""
    id: int
    first_name: str
    last_name: str
    role: str
    school_ids: FrozenSet[int] = frozenset()
    country_ids: FrozenSet[int] = frozenset()
    class_ids: FrozenSet[int] = frozenset()
    student_ids: FrozenSet[int] = frozenset()

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


@dataclass(frozen=True)
class SchoolRecord:
    id: int
    name: str
    country_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "country": self.country_name}


@dataclass(frozen=True)
class ClassRecord:
    id: int
    name: str
    school_id: int
    teacher_id: Optional[int] = None
    teacher_name: Optional[str] = None
    grade_level: Optional[str] = None
    academic_year: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "grade_level": self.grade_level,
            "academic_year": self.academic_year,
            "teacher": self.teacher_name,
        }


@dataclass(frozen=True)
class StudentRecord:
    id: int
    first_name: str
    last_name: str
    school_id: int
    class_id: Optional[int] = None
    student_id_number: Optional[str] = None
    is_active: bool = True

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "first_name": self.first_name,
            "last_name": self.last_name,
        }


@dataclass(frozen=True)
class SubjectRecord:
    id: int
    name: str
    display_order: int = 0


@dataclass(frozen=True)
class StrandRecord:
    id: int
    name: str
    subject_id: int
    display_order: int = 0


@dataclass(frozen=True)
class OutcomeRecord:
    """A learning outcome together with its strand and subject parents."""
    id: int
    code: str
    description: str
    strand: StrandRecord
    subject: SubjectRecord
    display_order: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "code": self.code,
            "description": self.description,
            "display_order": self.display_order,
        }


@dataclass(frozen=True)
class TermRecord:
    id: int
    name: str
    school_year: str
    school_id: int
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "school_year": self.school_year,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
        }


@dataclass(frozen=True)
class AssessmentRecord:
    """
    One observation of a student against a learning outcome.

    `id` grows with insertion order; it breaks ties between records that
    share an assessment date.
    """
    id: int
    student_id: int
    learning_outcome_id: int
    term_id: int
    assessment_date: date
    rating: str
    comment: Optional[str] = None
    assessed_by: Optional[int] = None
    created_by: Optional[int] = None
    assessor_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "student_id": self.student_id,
            "learning_outcome_id": self.learning_outcome_id,
            "term_id": self.term_id,
            "assessment_date": self.assessment_date.isoformat(),
            "rating": self.rating,
            "comment": self.comment,
            "assessed_by": self.assessed_by,
            "created_by": self.created_by,
        }


@dataclass(frozen=True)
class AssessmentFilter:
    """Any combination of filters accepted by `find_assessments`."""
    student_ids: Optional[FrozenSet[int]] = None
    class_id: Optional[int] = None
    school_id: Optional[int] = None
    term_id: Optional[int] = None
    subject_id: Optional[int] = None
    strand_id: Optional[int] = None
    outcome_id: Optional[int] = None


@dataclass
class Curriculum:
    """
    The full set of learning outcomes, in display order.

    Completion rates are always computed against this set (or one of
    its subject/strand slices), never against the assessed outcomes.
    """
    outcomes: List[OutcomeRecord] = field(default_factory=list)

    def __post_init__(self):
        self._by_id = {o.id: o for o in self.outcomes}

    @property
    def total_outcomes(self) -> int:
        return len(self._by_id)

    def outcome(self, outcome_id: int) -> Optional[OutcomeRecord]:
        return self._by_id.get(outcome_id)

    def outcomes_for_subject(self, subject_id: int) -> List[OutcomeRecord]:
        return [o for o in self.outcomes if o.subject.id == subject_id]

    def outcomes_for_strand(self, strand_id: int) -> List[OutcomeRecord]:
        return [o for o in self.outcomes if o.strand.id == strand_id]
