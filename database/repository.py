"""
SQLAlchemy implementation of the assessment repository.
Maps ORM rows to the plain records used by the reporting engine.
"""
import functools
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from reporting.records import (
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
from reporting.repository import AssessmentRepository
from reporting.results import RepositoryError

from .models import (
    AcademicTerm,
    Assessment,
    LearningOutcome,
    School,
    SchoolClass,
    Strand,
    Student,
    Subject,
    User,
)


def _wrap_errors(method):
    """Re-raise storage failures as RepositoryError."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise RepositoryError(str(e), operation=method.__name__) from e

    return wrapper


# ============== Row -> record mapping ==============

def _subject_record(subject: Subject) -> SubjectRecord:
    return SubjectRecord(id=subject.id, name=subject.name, display_order=subject.display_order)


def _strand_record(strand: Strand) -> StrandRecord:
    return StrandRecord(
        id=strand.id,
        name=strand.name,
        subject_id=strand.subject_id,
        display_order=strand.display_order,
    )


def _outcome_record(outcome: LearningOutcome) -> OutcomeRecord:
    return OutcomeRecord(
        id=outcome.id,
        code=outcome.code,
        description=outcome.description,
        display_order=outcome.display_order,
        strand=_strand_record(outcome.strand),
        subject=_subject_record(outcome.strand.subject),
    )


def _class_record(cls: SchoolClass) -> ClassRecord:
    return ClassRecord(
        id=cls.id,
        name=cls.name,
        school_id=cls.school_id,
        teacher_id=cls.teacher_id,
        teacher_name=cls.teacher.full_name if cls.teacher else None,
        grade_level=cls.grade_level,
        academic_year=cls.academic_year,
    )


def _student_record(student: Student) -> StudentRecord:
    return StudentRecord(
        id=student.id,
        first_name=student.first_name,
        last_name=student.last_name,
        school_id=student.school_id,
        class_id=student.class_id,
        student_id_number=student.student_id_number,
        is_active=student.is_active,
    )


def _assessment_record(assessment: Assessment) -> AssessmentRecord:
    return AssessmentRecord(
        id=assessment.id,
        student_id=assessment.student_id,
        learning_outcome_id=assessment.learning_outcome_id,
        term_id=assessment.term_id,
        assessment_date=assessment.assessment_date,
        rating=assessment.rating,
        comment=assessment.comment,
        assessed_by=assessment.assessed_by,
        created_by=assessment.created_by,
        assessor_name=assessment.assessor.full_name if assessment.assessor else None,
    )


class SqlAssessmentRepository(AssessmentRepository):
    """
    Repository backed by a SQLAlchemy session.
    One instance per request; the session's lifetime is the caller's.
    """

    def __init__(self, db: Session):
        self.db = db

    # ============== Lookups ==============

    @_wrap_errors
    def get_user(self, user_id: int) -> Optional[UserRecord]:
        user = (
            self.db.query(User)
            .options(
                joinedload(User.assignments),
                joinedload(User.classes),
                joinedload(User.guardian_links),
            )
            .filter(User.id == user_id)
            .first()
        )
        if not user:
            return None
        return UserRecord(
            id=user.id,
            first_name=user.first_name,
            last_name=user.last_name,
            role=user.role,
            school_ids=frozenset(a.school_id for a in user.assignments if a.school_id is not None),
            country_ids=frozenset(a.country_id for a in user.assignments if a.country_id is not None),
            class_ids=frozenset(c.id for c in user.classes),
            student_ids=frozenset(g.student_id for g in user.guardian_links),
        )

    @_wrap_errors
    def get_school(self, school_id: int) -> Optional[SchoolRecord]:
        school = self.db.query(School).filter(School.id == school_id).first()
        if not school:
            return None
        return SchoolRecord(
            id=school.id,
            name=school.name,
            country_name=school.country.name if school.country else None,
        )

    @_wrap_errors
    def get_class(self, class_id: int) -> Optional[ClassRecord]:
        cls = self.db.query(SchoolClass).filter(SchoolClass.id == class_id).first()
        return _class_record(cls) if cls else None

    @_wrap_errors
    def get_student(self, student_id: int) -> Optional[StudentRecord]:
        student = self.db.query(Student).filter(Student.id == student_id).first()
        return _student_record(student) if student else None

    @_wrap_errors
    def get_subject(self, subject_id: int) -> Optional[SubjectRecord]:
        subject = self.db.query(Subject).filter(Subject.id == subject_id).first()
        return _subject_record(subject) if subject else None

    @_wrap_errors
    def get_strand(self, strand_id: int) -> Optional[StrandRecord]:
        strand = self.db.query(Strand).filter(Strand.id == strand_id).first()
        return _strand_record(strand) if strand else None

    @_wrap_errors
    def get_outcome(self, outcome_id: int) -> Optional[OutcomeRecord]:
        outcome = (
            self.db.query(LearningOutcome)
            .options(joinedload(LearningOutcome.strand).joinedload(Strand.subject))
            .filter(LearningOutcome.id == outcome_id)
            .first()
        )
        return _outcome_record(outcome) if outcome else None

    @_wrap_errors
    def get_term(self, term_id: int) -> Optional[TermRecord]:
        term = self.db.query(AcademicTerm).filter(AcademicTerm.id == term_id).first()
        if not term:
            return None
        return TermRecord(
            id=term.id,
            name=term.name,
            school_year=term.school_year,
            school_id=term.school_id,
            start_date=term.start_date,
            end_date=term.end_date,
        )

    @_wrap_errors
    def get_assessment(self, assessment_id: int) -> Optional[AssessmentRecord]:
        assessment = (
            self.db.query(Assessment)
            .options(joinedload(Assessment.assessor))
            .filter(Assessment.id == assessment_id)
            .first()
        )
        return _assessment_record(assessment) if assessment else None

    # ============== Lists ==============

    @_wrap_errors
    def list_outcomes(
        self,
        subject_id: Optional[int] = None,
        strand_id: Optional[int] = None,
    ) -> List[OutcomeRecord]:
        query = (
            self.db.query(LearningOutcome)
            .join(Strand, LearningOutcome.strand_id == Strand.id)
            .join(Subject, Strand.subject_id == Subject.id)
            .options(joinedload(LearningOutcome.strand).joinedload(Strand.subject))
        )

        if subject_id:
            query = query.filter(Strand.subject_id == subject_id)

        if strand_id:
            query = query.filter(LearningOutcome.strand_id == strand_id)

        query = query.order_by(
            Subject.display_order, Strand.display_order, LearningOutcome.display_order, LearningOutcome.id
        )
        return [_outcome_record(o) for o in query.all()]

    @_wrap_errors
    def list_strands(self, subject_id: int) -> List[StrandRecord]:
        strands = (
            self.db.query(Strand)
            .filter(Strand.subject_id == subject_id)
            .order_by(Strand.display_order, Strand.id)
            .all()
        )
        return [_strand_record(s) for s in strands]

    @_wrap_errors
    def list_students(
        self,
        school_id: Optional[int] = None,
        class_id: Optional[int] = None,
        active: Optional[bool] = True,
    ) -> List[StudentRecord]:
        query = self.db.query(Student)

        if school_id:
            query = query.filter(Student.school_id == school_id)

        if class_id:
            query = query.filter(Student.class_id == class_id)

        if active is not None:
            query = query.filter(Student.is_active == active)

        query = query.order_by(Student.last_name, Student.first_name, Student.id)
        return [_student_record(s) for s in query.all()]

    @_wrap_errors
    def list_classes(self, school_id: int) -> List[ClassRecord]:
        classes = (
            self.db.query(SchoolClass)
            .options(joinedload(SchoolClass.teacher))
            .filter(SchoolClass.school_id == school_id)
            .order_by(SchoolClass.name, SchoolClass.id)
            .all()
        )
        return [_class_record(c) for c in classes]

    @_wrap_errors
    def find_assessments(self, filters: AssessmentFilter) -> List[AssessmentRecord]:
        query = self.db.query(Assessment).options(joinedload(Assessment.assessor))

        if filters.student_ids is not None:
            query = query.filter(Assessment.student_id.in_(list(filters.student_ids)))

        if filters.class_id or filters.school_id:
            query = query.join(Student, Assessment.student_id == Student.id)
            if filters.class_id:
                query = query.filter(Student.class_id == filters.class_id)
            if filters.school_id:
                query = query.filter(Student.school_id == filters.school_id)

        if filters.term_id:
            query = query.filter(Assessment.term_id == filters.term_id)

        if filters.outcome_id:
            query = query.filter(Assessment.learning_outcome_id == filters.outcome_id)

        if filters.subject_id or filters.strand_id:
            query = query.join(LearningOutcome, Assessment.learning_outcome_id == LearningOutcome.id)
            if filters.strand_id:
                query = query.filter(LearningOutcome.strand_id == filters.strand_id)
            if filters.subject_id:
                query = query.join(Strand, LearningOutcome.strand_id == Strand.id)
                query = query.filter(Strand.subject_id == filters.subject_id)

        query = query.order_by(Assessment.assessment_date, Assessment.id)
        return [_assessment_record(a) for a in query.all()]

    # ============== Writes ==============

    @_wrap_errors
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
        assessment = Assessment(
            student_id=student_id,
            learning_outcome_id=learning_outcome_id,
            term_id=term_id,
            assessment_date=assessment_date,
            rating=rating,
            comment=comment,
            assessed_by=assessed_by,
            created_by=created_by,
        )
        self.db.add(assessment)
        self.db.commit()
        self.db.refresh(assessment)
        return _assessment_record(assessment)

    @_wrap_errors
    def update_assessment(self, assessment_id: int, changes: Dict[str, Any]) -> AssessmentRecord:
        assessment = self.db.query(Assessment).filter(Assessment.id == assessment_id).first()
        if not assessment:
            raise RepositoryError(f"Assessment {assessment_id} disappeared", "update_assessment")
        for field, value in changes.items():
            setattr(assessment, field, value)
        self.db.commit()
        self.db.refresh(assessment)
        return _assessment_record(assessment)

    @_wrap_errors
    def delete_assessment(self, assessment_id: int) -> None:
        self.db.query(Assessment).filter(Assessment.id == assessment_id).delete()
        self.db.commit()
