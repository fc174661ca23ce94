"""
Assessment read/write operations with access scoping.

Lists degrade to what the actor may see; single-record changes are
denied outright when the actor is out of scope.
"""
import logging
from datetime import date
from typing import Any, Dict, List, Optional

from .access import AccessScopeResolver, Actor
from .records import AssessmentFilter, AssessmentRecord, Rating
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

EDITABLE_FIELDS = ("rating", "comment", "assessment_date")
VALID_RATINGS = tuple(r.value for r in Rating)


def list_assessments(
    repository: AssessmentRepository,
    actor: Actor,
    filters: AssessmentFilter,
) -> Result[List[AssessmentRecord]]:
    """
    Assessments matching the filters, limited to the actor's scope.

    Never FORBIDDEN: records outside the scope are simply left out.
    """
    resolver = AccessScopeResolver(repository)
    try:
        assessments = repository.find_assessments(filters)
        student_ids = {a.student_id for a in assessments}
        students = [repository.get_student(sid) for sid in student_ids]
        visible = {
            s.id for s in resolver.visible_students(actor, (s for s in students if s is not None))
        }
    except RepositoryError as e:
        logger.exception("Listing assessments failed: %s", e.message)
        return internal_failure("Could not list assessments")

    return Result.success([a for a in assessments if a.student_id in visible])


def record_assessment(
    repository: AssessmentRepository,
    actor: Actor,
    student_id: int,
    learning_outcome_id: int,
    term_id: int,
    rating: str,
    assessment_date: Optional[date] = None,
    comment: Optional[str] = None,
) -> Result[AssessmentRecord]:
    """
    Record a new assessment for a student.

    AUTHORIZATION: any actor allowed to write assessments whose scope
    covers the student.
    """
    if not actor.can_write_assessments:
        return forbidden("You cannot record assessments.")
    if rating not in VALID_RATINGS:
        return validation_failure(
            f"Rating must be one of: {', '.join(VALID_RATINGS)}", "rating"
        )

    resolver = AccessScopeResolver(repository)
    try:
        student_check = resolver.authorize_student(actor, student_id)
        if not student_check.ok:
            return student_check.propagate()

        if repository.get_outcome(learning_outcome_id) is None:
            return not_found("Learning outcome", learning_outcome_id)
        if repository.get_term(term_id) is None:
            return not_found("Term", term_id)

        created = repository.add_assessment(
            student_id=student_id,
            learning_outcome_id=learning_outcome_id,
            term_id=term_id,
            assessment_date=assessment_date or date.today(),
            rating=rating,
            comment=comment,
            assessed_by=actor.user_id,
            created_by=actor.user_id,
        )
    except RepositoryError as e:
        logger.exception("Recording assessment failed: %s", e.message)
        return internal_failure("Could not record the assessment")

    logger.info("User %s recorded assessment %s", actor.user_id, created.id)
    return Result.success(created)


def change_assessment(
    repository: AssessmentRepository,
    actor: Actor,
    assessment_id: int,
    changes: Dict[str, Any],
) -> Result[AssessmentRecord]:
    """
    Update rating, comment or date of an assessment.

    AUTHORIZATION: the assessment's creator or an admin-tier actor.
    """
    unknown = set(changes) - set(EDITABLE_FIELDS)
    if unknown:
        return validation_failure(
            f"Cannot change field(s): {', '.join(sorted(unknown))}", sorted(unknown)[0]
        )
    if "rating" in changes and changes["rating"] not in VALID_RATINGS:
        return validation_failure(
            f"Rating must be one of: {', '.join(VALID_RATINGS)}", "rating"
        )

    resolver = AccessScopeResolver(repository)
    try:
        check = resolver.authorize_assessment(actor, assessment_id, mutating=True)
        if not check.ok:
            return check
        if not changes:
            return check
        updated = repository.update_assessment(assessment_id, changes)
    except RepositoryError as e:
        logger.exception("Updating assessment %s failed: %s", assessment_id, e.message)
        return internal_failure("Could not update the assessment")

    logger.info("User %s updated assessment %s", actor.user_id, assessment_id)
    return Result.success(updated)


def remove_assessment(
    repository: AssessmentRepository,
    actor: Actor,
    assessment_id: int,
) -> Result[None]:
    """
    Delete an assessment.

    AUTHORIZATION: the assessment's creator or an admin-tier actor.
    """
    resolver = AccessScopeResolver(repository)
    try:
        check = resolver.authorize_assessment(actor, assessment_id, mutating=True)
        if not check.ok:
            return check.propagate()
        repository.delete_assessment(assessment_id)
    except RepositoryError as e:
        logger.exception("Deleting assessment %s failed: %s", assessment_id, e.message)
        return internal_failure("Could not delete the assessment")

    logger.info("User %s deleted assessment %s", actor.user_id, assessment_id)
    return Result.success()
