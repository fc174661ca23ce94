"""
Unit tests for access scoping and assessment writes.
"""
from datetime import date

import pytest

from reporting import (
    AccessScopeResolver,
    Actor,
    AssessmentFilter,
    CountryAdmin,
    ErrorKind,
    ParentStudent,
    SchoolAdmin,
    Superuser,
    Teacher,
    UserRecord,
    actor_from_user,
    change_assessment,
    list_assessments,
    load_actor,
    record_assessment,
    remove_assessment,
)

from conftest import assessment


def actor(repository, user_id):
    result = load_actor(repository, user_id)
    assert result.ok
    return result.value


class TestActors:
    """Tests for loading actors from storage."""

    def test_actor_variants(self, repository):
        """Test each stored role maps to its actor variant."""
        assert isinstance(actor(repository, 1), Superuser)
        assert isinstance(actor(repository, 2), SchoolAdmin)
        assert isinstance(actor(repository, 10), Teacher)
        assert isinstance(actor(repository, 20), ParentStudent)

    def test_base_actor_is_abstract(self):
        """Test the base actor cannot be built without a scope."""
        with pytest.raises(TypeError):
            Actor(1)

        class Visitor(Actor):
            pass

        with pytest.raises(TypeError):
            Visitor(1)

    def test_unknown_user(self, repository):
        """Test missing users are NOT_FOUND."""
        result = load_actor(repository, 9999)
        assert result.error.kind == ErrorKind.NOT_FOUND

    def test_unknown_role(self, repository):
        """Test unknown stored roles are refused."""
        repository.add(UserRecord(id=50, first_name="X", last_name="Y", role="JANITOR"))
        result = load_actor(repository, 50)
        assert result.error.kind == ErrorKind.FORBIDDEN
        with pytest.raises(ValueError):
            actor_from_user(repository.users[50])

    def test_scopes(self):
        """Test superuser and country admin are unrestricted."""
        assert Superuser(1).scope().unrestricted
        assert CountryAdmin(3, country_ids=frozenset({1})).scope().unrestricted
        scope = SchoolAdmin(2, school_ids=frozenset({1})).scope()
        assert scope.allows(1)
        assert not scope.allows(2)


class TestResolver:
    """Tests for school, class and student authorization."""

    def test_teacher_without_assignment(self, repository):
        """Test a teacher with no school assignment is denied any school."""
        resolver = AccessScopeResolver(repository)
        result = resolver.authorize_school(actor(repository, 12), 1)
        assert result.error.kind == ErrorKind.FORBIDDEN

    def test_authorize_school_reads_nothing(self, repository):
        """Test the school check is answered from the actor alone."""
        teacher = actor(repository, 10)
        repository.calls.clear()
        assert AccessScopeResolver(repository).authorize_school(teacher, 1).ok
        assert repository.calls == []

    def test_teacher_own_class_only(self, repository):
        """Test a teacher reads their own class but not a colleague's."""
        resolver = AccessScopeResolver(repository)
        teacher = actor(repository, 10)
        assert resolver.authorize_class(teacher, 100).ok
        denied = resolver.authorize_class(teacher, 101)
        assert denied.error.kind == ErrorKind.FORBIDDEN

    def test_school_admin_any_class_in_school(self, repository):
        """Test a school admin reads every class of their school, none elsewhere."""
        resolver = AccessScopeResolver(repository)
        admin = actor(repository, 2)
        assert resolver.authorize_class(admin, 101).value.name == "K-B"
        assert resolver.authorize_class(admin, 200).error.kind == ErrorKind.FORBIDDEN

    def test_missing_class(self, repository):
        """Test unknown classes are NOT_FOUND."""
        resolver = AccessScopeResolver(repository)
        assert resolver.authorize_class(actor(repository, 1), 999).error.kind == ErrorKind.NOT_FOUND

    def test_parent_linked_students_only(self, repository):
        """Test a parent sees linked students and no class."""
        resolver = AccessScopeResolver(repository)
        parent = actor(repository, 20)
        assert resolver.authorize_student(parent, 1000).ok
        assert resolver.authorize_student(parent, 1001).error.kind == ErrorKind.FORBIDDEN
        assert resolver.authorize_class(parent, 100).error.kind == ErrorKind.FORBIDDEN

    def test_teacher_reads_school_students(self, repository):
        """Test a teacher reads any student of their school."""
        resolver = AccessScopeResolver(repository)
        teacher = actor(repository, 10)
        assert resolver.authorize_student(teacher, 1002).ok
        assert resolver.authorize_student(teacher, 2000).error.kind == ErrorKind.FORBIDDEN

    def test_visible_students(self, repository):
        """Test list filtering keeps only readable students."""
        resolver = AccessScopeResolver(repository)
        visible = resolver.visible_students(actor(repository, 20), repository.students.values())
        assert [s.id for s in visible] == [1000]


class TestAssessmentWrites:
    """Tests for recording, changing and deleting assessments."""

    def test_teacher_records_assessment(self, repository):
        """Test a teacher records an assessment for a school student."""
        result = record_assessment(
            repository, actor(repository, 10),
            student_id=1000, learning_outcome_id=1, term_id=1,
            rating="MEETING", assessment_date=date(2024, 10, 1),
        )
        assert result.ok
        assert result.value.created_by == 10
        assert result.value.rating == "MEETING"

    def test_invalid_rating(self, repository):
        """Test unknown ratings fail validation before any read."""
        result = record_assessment(
            repository, actor(repository, 10),
            student_id=1000, learning_outcome_id=1, term_id=1, rating="GREAT",
        )
        assert result.error.kind == ErrorKind.VALIDATION
        assert result.error.field == "rating"

    def test_parent_cannot_record(self, repository):
        """Test parents never write assessments."""
        result = record_assessment(
            repository, actor(repository, 20),
            student_id=1000, learning_outcome_id=1, term_id=1, rating="MEETING",
        )
        assert result.error.kind == ErrorKind.FORBIDDEN

    def test_missing_outcome(self, repository):
        """Test unknown outcomes are NOT_FOUND."""
        result = record_assessment(
            repository, actor(repository, 10),
            student_id=1000, learning_outcome_id=999, term_id=1, rating="MEETING",
        )
        assert result.error.kind == ErrorKind.NOT_FOUND

    def test_only_creator_or_admin_changes(self, repository):
        """Test another teacher cannot change an assessment; an admin can."""
        repository.add(assessment(1, 1000, 1, "MEETING", created_by=10))

        denied = change_assessment(repository, actor(repository, 11), 1, {"rating": "EASILY_MEETING"})
        assert denied.error.kind == ErrorKind.FORBIDDEN

        allowed = change_assessment(repository, actor(repository, 2), 1, {"rating": "EASILY_MEETING"})
        assert allowed.ok
        assert repository.assessments[1].rating == "EASILY_MEETING"

    def test_change_rejects_unknown_fields(self, repository):
        """Test only rating, comment and date may change."""
        repository.add(assessment(1, 1000, 1, "MEETING", created_by=10))
        result = change_assessment(repository, actor(repository, 10), 1, {"student_id": 1001})
        assert result.error.kind == ErrorKind.VALIDATION

    def test_remove_assessment(self, repository):
        """Test the creator deletes an assessment."""
        repository.add(assessment(1, 1000, 1, "MEETING", created_by=10))
        assert remove_assessment(repository, actor(repository, 10), 1).ok
        assert 1 not in repository.assessments
        missing = remove_assessment(repository, actor(repository, 10), 1)
        assert missing.error.kind == ErrorKind.NOT_FOUND

    def test_list_filters_to_scope(self, repository):
        """Test listing drops records outside the actor's scope."""
        repository.add(assessment(1, 1000, 1, "MEETING"))
        repository.add(assessment(2, 1001, 1, "MEETING"))
        repository.add(assessment(3, 2000, 1, "MEETING"))

        parent = list_assessments(repository, actor(repository, 20), AssessmentFilter())
        assert [a.id for a in parent.value] == [1]

        teacher = list_assessments(repository, actor(repository, 10), AssessmentFilter())
        assert [a.id for a in teacher.value] == [1, 2]
