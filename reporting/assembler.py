"""
Report assembly: scope check -> fetch -> aggregate -> decorate.

Every public method returns a Result. Checks run in a fixed order:
1. Mandatory parameters (no repository call before this passes)
2. Authorization (a denial stops before any report data is read)
3. Referenced entities exist
4. Fetch, aggregate, attach names and labels
"""
import functools
import logging
from typing import Any, Dict, Optional

from .access import AccessScopeResolver, Actor
from .aggregation import (
    build_class_summary,
    build_outcome_report,
    build_school_summary,
    build_strand_report,
    build_student_report,
    build_student_subject_report,
)
from .records import AssessmentFilter, Curriculum, StudentRecord, TermRecord
from .repository import AssessmentRepository
from .results import (
    RepositoryError,
    Result,
    forbidden,
    internal_failure,
    not_found,
    validation_failure,
)

logger = logging.getLogger(__name__)

REPORT_TYPES = ("student", "student-subject", "strand", "outcome", "class", "school")


def _guard_repository(method):
    """Turn a RepositoryError into an INTERNAL result."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except RepositoryError as e:
            logger.exception("Repository failure in %s: %s", method.__name__, e.message)
            return internal_failure()

    return wrapper


class ReportAssembler:
    """
    Builds the six report types for an actor.

    The repository is injected; the assembler holds no other state.
    """

    def __init__(
        self,
        repository: AssessmentRepository,
        resolver: Optional[AccessScopeResolver] = None,
    ):
        self.repository = repository
        self.resolver = resolver or AccessScopeResolver(repository)

    # ============== Student reports ==============

    @_guard_repository
    def student_report(
        self,
        actor: Actor,
        student_id: int,
        term_id: Optional[int] = None,
    ) -> Result[Dict[str, Any]]:
        """One student's performance across all subjects (by learner)."""
        student_check = self.resolver.authorize_student(actor, student_id)
        if not student_check.ok:
            return student_check
        student = student_check.value

        term_check = self._resolve_term(term_id)
        if not term_check.ok:
            return term_check

        assessments = self.repository.find_assessments(
            AssessmentFilter(student_ids=frozenset({student_id}), term_id=term_id)
        )
        curriculum = Curriculum(self.repository.list_outcomes())

        report = build_student_report(assessments, curriculum)
        return Result.success({
            "student": self._student_block(student),
            "term_id": term_id,
            "term": self._term_block(term_check.value),
            **report,
        })

    @_guard_repository
    def student_subject_report(
        self,
        actor: Actor,
        student_id: int,
        subject_id: int,
        term_id: Optional[int] = None,
    ) -> Result[Dict[str, Any]]:
        """One student's assessments in one subject, one column per date."""
        student_check = self.resolver.authorize_student(actor, student_id)
        if not student_check.ok:
            return student_check
        student = student_check.value

        subject = self.repository.get_subject(subject_id)
        if subject is None:
            return not_found("Subject", subject_id)

        term_check = self._resolve_term(term_id)
        if not term_check.ok:
            return term_check

        curriculum = Curriculum(self.repository.list_outcomes())
        strands = self.repository.list_strands(subject_id)
        assessments = self.repository.find_assessments(
            AssessmentFilter(
                student_ids=frozenset({student_id}),
                subject_id=subject_id,
                term_id=term_id,
            )
        )

        report = build_student_subject_report(
            strands,
            curriculum.outcomes_for_subject(subject_id),
            assessments,
            curriculum.total_outcomes,
        )
        return Result.success({
            "student": self._student_block(student),
            "subject": {"id": subject.id, "name": subject.name},
            "term_id": term_id,
            "term": self._term_block(term_check.value),
            **report,
        })

    # ============== Class-scoped reports ==============

    @_guard_repository
    def strand_report(
        self,
        actor: Actor,
        strand_id: int,
        class_id: Optional[int] = None,
        term_id: Optional[int] = None,
    ) -> Result[Dict[str, Any]]:
        """All students of a class against every outcome of a strand."""
        if class_id is None:
            logger.info("Strand report %s requested without class_id", strand_id)
            return validation_failure("class_id is required for strand reports", "class_id")

        class_check = self.resolver.authorize_class(actor, class_id)
        if not class_check.ok:
            return class_check
        class_record = class_check.value

        strand = self.repository.get_strand(strand_id)
        if strand is None:
            return not_found("Strand", strand_id)

        term_check = self._resolve_term(term_id)
        if not term_check.ok:
            return term_check

        students = self.repository.list_students(class_id=class_id, active=True)
        curriculum = Curriculum(self.repository.list_outcomes())
        assessments = self.repository.find_assessments(
            AssessmentFilter(
                student_ids=frozenset(s.id for s in students),
                strand_id=strand_id,
                term_id=term_id,
            )
        )

        report = build_strand_report(
            curriculum.outcomes_for_strand(strand_id),
            students,
            assessments,
            curriculum.total_outcomes,
        )
        subject = self.repository.get_subject(strand.subject_id)
        return Result.success({
            "strand": {
                "id": strand.id,
                "name": strand.name,
                "subject_name": subject.name if subject else None,
            },
            "class": class_record.to_dict(),
            "term_id": term_id,
            "term": self._term_block(term_check.value),
            **report,
        })

    @_guard_repository
    def outcome_report(
        self,
        actor: Actor,
        outcome_id: int,
        class_id: Optional[int] = None,
        term_id: Optional[int] = None,
    ) -> Result[Dict[str, Any]]:
        """Each student of a class against a single outcome (by SCO)."""
        if class_id is None:
            logger.info("Outcome report %s requested without class_id", outcome_id)
            return validation_failure("class_id is required for outcome reports", "class_id")

        class_check = self.resolver.authorize_class(actor, class_id)
        if not class_check.ok:
            return class_check
        class_record = class_check.value

        outcome = self.repository.get_outcome(outcome_id)
        if outcome is None:
            return not_found("Learning outcome", outcome_id)

        term_check = self._resolve_term(term_id)
        if not term_check.ok:
            return term_check

        students = self.repository.list_students(class_id=class_id, active=True)
        assessments = self.repository.find_assessments(
            AssessmentFilter(
                student_ids=frozenset(s.id for s in students),
                outcome_id=outcome_id,
                term_id=term_id,
            )
        )

        report = build_outcome_report(students, assessments)
        return Result.success({
            "outcome": {
                "id": outcome.id,
                "code": outcome.code,
                "description": outcome.description,
                "subject_name": outcome.subject.name,
                "strand_name": outcome.strand.name,
            },
            "class": class_record.to_dict(),
            "term_id": term_id,
            "term": self._term_block(term_check.value),
            **report,
        })

    @_guard_repository
    def class_summary(
        self,
        actor: Actor,
        class_id: int,
        term_id: Optional[int] = None,
    ) -> Result[Dict[str, Any]]:
        """Per-student and per-subject stats for a class."""
        class_check = self.resolver.authorize_class(actor, class_id)
        if not class_check.ok:
            return class_check
        class_record = class_check.value

        term_check = self._resolve_term(term_id)
        if not term_check.ok:
            return term_check

        students = self.repository.list_students(class_id=class_id, active=True)
        assessments = self.repository.find_assessments(
            AssessmentFilter(student_ids=frozenset(s.id for s in students), term_id=term_id)
        )
        curriculum = Curriculum(self.repository.list_outcomes())

        report = build_class_summary(students, assessments, curriculum)
        school = self.repository.get_school(class_record.school_id)
        return Result.success({
            "class": {
                **class_record.to_dict(),
                "school": school.name if school else None,
            },
            "term_id": term_id,
            "term": self._term_block(term_check.value),
            **report,
        })

    # ============== School report ==============

    @_guard_repository
    def school_summary(
        self,
        actor: Actor,
        school_id: int,
        term_id: Optional[int] = None,
    ) -> Result[Dict[str, Any]]:
        """Per-class stats for a school. Admin-tier actors only."""
        if not actor.can_view_school_summary:
            logger.info("Denied %s %s school summary", actor.role.value, actor.user_id)
            return forbidden("Only school administrators can view school summaries.")

        school_check = self.resolver.authorize_school(actor, school_id)
        if not school_check.ok:
            return school_check

        school = self.repository.get_school(school_id)
        if school is None:
            return not_found("School", school_id)

        term_check = self._resolve_term(term_id)
        if not term_check.ok:
            return term_check

        classes = self.repository.list_classes(school_id)
        students = self.repository.list_students(school_id=school_id, active=True)
        assessments = self.repository.find_assessments(
            AssessmentFilter(student_ids=frozenset(s.id for s in students), term_id=term_id)
        )
        curriculum = Curriculum(self.repository.list_outcomes())

        report = build_school_summary(classes, students, assessments, curriculum)
        return Result.success({
            "school": school.to_dict(),
            "term_id": term_id,
            "term": self._term_block(term_check.value),
            **report,
        })

    # ============== Dispatch ==============

    def build(
        self,
        actor: Actor,
        report_type: str,
        params: Dict[str, Any],
    ) -> Result[Dict[str, Any]]:
        """
        Build a report from its type tag and request parameters.

        Used by exports, which name the report instead of calling the
        specific method.
        """
        term_id = params.get("term_id")

        if report_type == "student":
            return self._with_required(params, "student_id", lambda: self.student_report(
                actor, params["student_id"], term_id))
        if report_type == "student-subject":
            return self._with_required(params, ("student_id", "subject_id"), lambda: self.student_subject_report(
                actor, params["student_id"], params["subject_id"], term_id))
        if report_type == "strand":
            return self._with_required(params, "strand_id", lambda: self.strand_report(
                actor, params["strand_id"], params.get("class_id"), term_id))
        if report_type == "outcome":
            return self._with_required(params, "outcome_id", lambda: self.outcome_report(
                actor, params["outcome_id"], params.get("class_id"), term_id))
        if report_type == "class":
            return self._with_required(params, "class_id", lambda: self.class_summary(
                actor, params["class_id"], term_id))
        if report_type == "school":
            return self._with_required(params, "school_id", lambda: self.school_summary(
                actor, params["school_id"], term_id))

        return validation_failure(
            f"Invalid report type '{report_type}'. Must be one of: {', '.join(REPORT_TYPES)}",
            "report_type",
        )

    # ============== Helpers ==============

    @staticmethod
    def _with_required(params: Dict[str, Any], fields, build) -> Result:
        if isinstance(fields, str):
            fields = (fields,)
        for name in fields:
            if params.get(name) is None:
                return validation_failure(f"{name} is required for this report", name)
        return build()

    def _resolve_term(self, term_id: Optional[int]) -> Result[Optional[TermRecord]]:
        if term_id is None:
            return Result.success(None)
        term = self.repository.get_term(term_id)
        if term is None:
            return not_found("Term", term_id)
        return Result.success(term)

    @staticmethod
    def _term_block(term: Optional[TermRecord]) -> Optional[Dict[str, Any]]:
        return term.to_dict() if term else None

    def _student_block(self, student: StudentRecord) -> Dict[str, Any]:
        school = self.repository.get_school(student.school_id)
        class_record = self.repository.get_class(student.class_id) if student.class_id else None
        return {
            **student.to_dict(),
            "student_id_number": student.student_id_number,
            "school": school.name if school else None,
            "class": class_record.name if class_record else None,
            "grade_level": class_record.grade_level if class_record else None,
        }
