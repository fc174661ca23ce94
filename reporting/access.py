"""
Access scoping for the Kindergarten Assessment system.
Decides which schools, classes, students and assessments an actor may
read or change.

RULES:
1. Never trust the client for role - always load the actor from storage
2. SUPERUSER and COUNTRY_ADMIN scopes are unrestricted
3. Everyone else is limited to the schools they are assigned to
4. Teachers only report on classes they teach
5. Parents/students only see their linked students
6. Only the creator or an admin-tier actor may change an assessment

Resource checks are two-phase: resolve the resource to its owning
school, then check the school against the actor's scope.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, ClassVar, Dict, FrozenSet, Iterable, List

from .records import (
    AssessmentRecord,
    ClassRecord,
    StudentRecord,
    UserRecord,
    UserRole,
)
from .repository import AssessmentRepository
from .results import Result, forbidden, not_found

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccessScope:
    """The set of schools an actor may operate on for a request."""
    unrestricted: bool = False
    school_ids: FrozenSet[int] = frozenset()

    def allows(self, school_id: int) -> bool:
        return self.unrestricted or school_id in self.school_ids


UNRESTRICTED = AccessScope(unrestricted=True)


@dataclass(frozen=True)
class Actor(ABC):
    """Base of the actor variants. Subclasses decide their own scope."""
    user_id: int

    role: ClassVar[UserRole]
    is_admin_tier: ClassVar[bool] = False
    can_write_assessments: ClassVar[bool] = True
    can_view_school_summary: ClassVar[bool] = False

    @abstractmethod
    def scope(self) -> AccessScope:
        """The schools this actor may operate on."""

    def may_read_class(self, class_record: ClassRecord) -> bool:
        return True

    def may_read_student(self, student: StudentRecord) -> bool:
        return True

    def may_modify_assessment(self, assessment: AssessmentRecord) -> bool:
        return self.is_admin_tier or assessment.created_by == self.user_id


@dataclass(frozen=True)
class Superuser(Actor):
    role: ClassVar[UserRole] = UserRole.SUPERUSER
    is_admin_tier: ClassVar[bool] = True
    can_view_school_summary: ClassVar[bool] = True

    def scope(self) -> AccessScope:
        return UNRESTRICTED


@dataclass(frozen=True)
class CountryAdmin(Actor):
    country_ids: FrozenSet[int] = frozenset()

    role: ClassVar[UserRole] = UserRole.COUNTRY_ADMIN
    is_admin_tier: ClassVar[bool] = True
    can_view_school_summary: ClassVar[bool] = True

    def scope(self) -> AccessScope:
        # TODO: restrict to schools of country_ids once schools are joined to countries here
        return UNRESTRICTED


@dataclass(frozen=True)
class SchoolAdmin(Actor):
    school_ids: FrozenSet[int] = frozenset()

    role: ClassVar[UserRole] = UserRole.SCHOOL_ADMIN
    is_admin_tier: ClassVar[bool] = True
    can_view_school_summary: ClassVar[bool] = True

    def scope(self) -> AccessScope:
        return AccessScope(school_ids=self.school_ids)


@dataclass(frozen=True)
class Teacher(Actor):
    school_ids: FrozenSet[int] = frozenset()
    class_ids: FrozenSet[int] = frozenset()

    role: ClassVar[UserRole] = UserRole.TEACHER

    def scope(self) -> AccessScope:
        return AccessScope(school_ids=self.school_ids)

    def may_read_class(self, class_record: ClassRecord) -> bool:
        return class_record.teacher_id == self.user_id


@dataclass(frozen=True)
class ParentStudent(Actor):
    school_ids: FrozenSet[int] = frozenset()
    student_ids: FrozenSet[int] = frozenset()

    role: ClassVar[UserRole] = UserRole.PARENT_STUDENT
    can_write_assessments: ClassVar[bool] = False

    def scope(self) -> AccessScope:
        return AccessScope(school_ids=self.school_ids)

    def may_read_class(self, class_record: ClassRecord) -> bool:
        return False

    def may_read_student(self, student: StudentRecord) -> bool:
        return student.id in self.student_ids

    def may_modify_assessment(self, assessment: AssessmentRecord) -> bool:
        return False


_ACTOR_FACTORIES: Dict[str, Callable[[UserRecord], Actor]] = {
    UserRole.SUPERUSER.value: lambda u: Superuser(u.id),
    UserRole.COUNTRY_ADMIN.value: lambda u: CountryAdmin(u.id, country_ids=u.country_ids),
    UserRole.SCHOOL_ADMIN.value: lambda u: SchoolAdmin(u.id, school_ids=u.school_ids),
    UserRole.TEACHER.value: lambda u: Teacher(u.id, school_ids=u.school_ids, class_ids=u.class_ids),
    UserRole.PARENT_STUDENT.value: lambda u: ParentStudent(
        u.id, school_ids=u.school_ids, student_ids=u.student_ids
    ),
}


def actor_from_user(user: UserRecord) -> Actor:
    """
    Build the actor variant for a stored user.

    Raises:
        ValueError: If the stored role is not a known role
    """
    factory = _ACTOR_FACTORIES.get(str(getattr(user.role, "value", user.role)))
    if factory is None:
        raise ValueError(f"Unknown role '{user.role}' for user {user.id}")
    return factory(user)


def load_actor(repository: AssessmentRepository, user_id: int) -> Result[Actor]:
    """
    Load an actor from storage.
    NEVER trust a client-provided role.
    """
    user = repository.get_user(user_id)
    if user is None:
        return not_found("User", user_id)
    try:
        return Result.success(actor_from_user(user))
    except ValueError as e:
        logger.warning("Refusing actor %s: %s", user_id, e)
        return forbidden(str(e))


class AccessScopeResolver:
    """
    Resolves actors to authorization decisions.
    Every check returns a Result; a FORBIDDEN result never raises.
    """

    def __init__(self, repository: AssessmentRepository):
        self.repository = repository

    def resolve_school_scope(self, actor: Actor) -> AccessScope:
        """Schools the actor may operate on."""
        return actor.scope()

    def authorize_school(self, actor: Actor, school_id: int) -> Result[None]:
        """Allow if the scope is unrestricted or contains the school."""
        if self.resolve_school_scope(actor).allows(school_id):
            return Result.success()
        logger.info("Denied %s %s access to school %s", actor.role.value, actor.user_id, school_id)
        return forbidden("You do not have access to this school's data.")

    def authorize_class(self, actor: Actor, class_id: int) -> Result[ClassRecord]:
        """
        Authorize access to a class.

        The class's school must be in scope; a teacher must also be the
        class's assigned teacher.
        """
        class_record = self.repository.get_class(class_id)
        if class_record is None:
            return not_found("Class", class_id)

        school_check = self.authorize_school(actor, class_record.school_id)
        if not school_check.ok:
            return school_check.propagate()

        if not actor.may_read_class(class_record):
            logger.info("Denied %s %s access to class %s", actor.role.value, actor.user_id, class_id)
            return forbidden("You are not assigned to this class.")

        return Result.success(class_record)

    def authorize_student(self, actor: Actor, student_id: int) -> Result[StudentRecord]:
        """Authorize access to a student through the student's school."""
        student = self.repository.get_student(student_id)
        if student is None:
            return not_found("Student", student_id)

        school_check = self.authorize_school(actor, student.school_id)
        if not school_check.ok:
            return school_check.propagate()

        if not actor.may_read_student(student):
            logger.info("Denied %s %s access to student %s", actor.role.value, actor.user_id, student_id)
            return forbidden("You do not have access to this student.")

        return Result.success(student)

    def authorize_assessment(
        self,
        actor: Actor,
        assessment_id: int,
        mutating: bool = False,
    ) -> Result[AssessmentRecord]:
        """
        Authorize access to an assessment through its student's school.

        Reads are open to anyone who may read the student; changes are
        limited to the assessment's creator and admin-tier actors.
        """
        assessment = self.repository.get_assessment(assessment_id)
        if assessment is None:
            return not_found("Assessment", assessment_id)

        student_check = self.authorize_student(actor, assessment.student_id)
        if not student_check.ok:
            return student_check.propagate()

        if mutating and not actor.may_modify_assessment(assessment):
            logger.info(
                "Denied %s %s changes to assessment %s", actor.role.value, actor.user_id, assessment_id
            )
            return forbidden("You can only modify assessments you created.")

        return Result.success(assessment)

    def visible_students(self, actor: Actor, students: Iterable[StudentRecord]) -> List[StudentRecord]:
        """Filter a student list down to what the actor may read."""
        scope = self.resolve_school_scope(actor)
        return [
            s for s in students
            if scope.allows(s.school_id) and actor.may_read_student(s)
        ]
