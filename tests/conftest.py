"""
Shared fixtures: an in-memory repository and a small school.
"""
from dataclasses import replace
from datetime import date

import pytest

from reporting import (
    AssessmentFilter,
    AssessmentRecord,
    AssessmentRepository,
    ClassRecord,
    OutcomeRecord,
    SchoolRecord,
    StrandRecord,
    StudentRecord,
    SubjectRecord,
    TermRecord,
    UserRecord,
)


class StubRepository(AssessmentRepository):
    """Dict-backed repository that records every call made to it."""

    def __init__(self):
        self.calls = []
        self.users = {}
        self.schools = {}
        self.classes = {}
        self.students = {}
        self.subjects = {}
        self.strands = {}
        self.outcomes = {}
        self.terms = {}
        self.assessments = {}
        self.fail_with = None

    def _record(self, name, *args):
        self.calls.append((name, args))
        if self.fail_with is not None:
            raise self.fail_with

    def get_user(self, user_id):
        self._record("get_user", user_id)
        return self.users.get(user_id)

    def get_school(self, school_id):
        self._record("get_school", school_id)
        return self.schools.get(school_id)

    def get_class(self, class_id):
        self._record("get_class", class_id)
        return self.classes.get(class_id)

    def get_student(self, student_id):
        self._record("get_student", student_id)
        return self.students.get(student_id)

    def get_subject(self, subject_id):
        self._record("get_subject", subject_id)
        return self.subjects.get(subject_id)

    def get_strand(self, strand_id):
        self._record("get_strand", strand_id)
        return self.strands.get(strand_id)

    def get_outcome(self, outcome_id):
        self._record("get_outcome", outcome_id)
        return self.outcomes.get(outcome_id)

    def get_term(self, term_id):
        self._record("get_term", term_id)
        return self.terms.get(term_id)

    def get_assessment(self, assessment_id):
        self._record("get_assessment", assessment_id)
        return self.assessments.get(assessment_id)

    def list_outcomes(self, subject_id=None, strand_id=None):
        self._record("list_outcomes", subject_id, strand_id)
        outcomes = [
            o for o in self.outcomes.values()
            if (subject_id is None or o.subject.id == subject_id)
            and (strand_id is None or o.strand.id == strand_id)
        ]
        return sorted(
            outcomes,
            key=lambda o: (o.subject.display_order, o.strand.display_order, o.display_order, o.id),
        )

    def list_strands(self, subject_id):
        self._record("list_strands", subject_id)
        return sorted(
            (s for s in self.strands.values() if s.subject_id == subject_id),
            key=lambda s: (s.display_order, s.id),
        )

    def list_students(self, school_id=None, class_id=None, active=True):
        self._record("list_students", school_id, class_id, active)
        students = [
            s for s in self.students.values()
            if (school_id is None or s.school_id == school_id)
            and (class_id is None or s.class_id == class_id)
            and (active is None or s.is_active == active)
        ]
        return sorted(students, key=lambda s: (s.last_name, s.first_name, s.id))

    def list_classes(self, school_id):
        self._record("list_classes", school_id)
        return [c for c in self.classes.values() if c.school_id == school_id]

    def find_assessments(self, filters: AssessmentFilter):
        self._record("find_assessments", filters)
        result = []
        for a in self.assessments.values():
            student = self.students.get(a.student_id)
            outcome = self.outcomes.get(a.learning_outcome_id)
            if filters.student_ids is not None and a.student_id not in filters.student_ids:
                continue
            if filters.class_id and (student is None or student.class_id != filters.class_id):
                continue
            if filters.school_id and (student is None or student.school_id != filters.school_id):
                continue
            if filters.term_id and a.term_id != filters.term_id:
                continue
            if filters.outcome_id and a.learning_outcome_id != filters.outcome_id:
                continue
            if filters.strand_id and (outcome is None or outcome.strand.id != filters.strand_id):
                continue
            if filters.subject_id and (outcome is None or outcome.subject.id != filters.subject_id):
                continue
            result.append(a)
        return sorted(result, key=lambda a: (a.assessment_date, a.id))

    def add_assessment(self, student_id, learning_outcome_id, term_id, assessment_date,
                       rating, comment, assessed_by, created_by):
        self._record("add_assessment", student_id)
        new_id = max(self.assessments, default=0) + 1
        record = AssessmentRecord(
            id=new_id,
            student_id=student_id,
            learning_outcome_id=learning_outcome_id,
            term_id=term_id,
            assessment_date=assessment_date,
            rating=rating,
            comment=comment,
            assessed_by=assessed_by,
            created_by=created_by,
        )
        self.assessments[new_id] = record
        return record

    def update_assessment(self, assessment_id, changes):
        self._record("update_assessment", assessment_id)
        current = self.assessments[assessment_id]
        updated = replace(current, **changes)
        self.assessments[assessment_id] = updated
        return updated

    def delete_assessment(self, assessment_id):
        self._record("delete_assessment", assessment_id)
        self.assessments.pop(assessment_id, None)

    # test helpers

    def add(self, record):
        store = {
            UserRecord: self.users,
            SchoolRecord: self.schools,
            ClassRecord: self.classes,
            StudentRecord: self.students,
            SubjectRecord: self.subjects,
            StrandRecord: self.strands,
            OutcomeRecord: self.outcomes,
            TermRecord: self.terms,
            AssessmentRecord: self.assessments,
        }[type(record)]
        store[record.id] = record
        return record


def make_outcomes(subject, strand, count, start_id=1):
    return [
        OutcomeRecord(
            id=start_id + i,
            code=f"{strand.name[:2].upper()}-{i + 1}",
            description=f"Outcome {i + 1} of {strand.name}",
            strand=strand,
            subject=subject,
            display_order=i + 1,
        )
        for i in range(count)
    ]


def assessment(id, student_id, outcome_id, rating, when=date(2024, 10, 1), term_id=1,
               created_by=10, comment=None):
    return AssessmentRecord(
        id=id,
        student_id=student_id,
        learning_outcome_id=outcome_id,
        term_id=term_id,
        assessment_date=when,
        rating=rating,
        comment=comment,
        assessed_by=created_by,
        created_by=created_by,
    )


@pytest.fixture
def repository():
    """
    Two schools. School 1 has class 100 (teacher 10) and class 101
    (teacher 11). Curriculum: 2 subjects, 3 strands, 8 outcomes.
    """
    repo = StubRepository()
    repo.add(SchoolRecord(id=1, name="Castries Primary", country_name="Saint Lucia"))
    repo.add(SchoolRecord(id=2, name="Soufriere Primary", country_name="Saint Lucia"))

    repo.add(UserRecord(id=1, first_name="Sys", last_name="Admin", role="SUPERUSER"))
    repo.add(UserRecord(id=2, first_name="Dee", last_name="Felix", role="SCHOOL_ADMIN",
                        school_ids=frozenset({1})))
    repo.add(UserRecord(id=10, first_name="Grace", last_name="Alexander", role="TEACHER",
                        school_ids=frozenset({1}), class_ids=frozenset({100})))
    repo.add(UserRecord(id=11, first_name="Peter", last_name="Mathurin", role="TEACHER",
                        school_ids=frozenset({1}), class_ids=frozenset({101})))
    repo.add(UserRecord(id=12, first_name="New", last_name="Teacher", role="TEACHER"))
    repo.add(UserRecord(id=20, first_name="Joan", last_name="Baptiste", role="PARENT_STUDENT",
                        school_ids=frozenset({1}), student_ids=frozenset({1000})))

    repo.add(ClassRecord(id=100, name="K-A", school_id=1, teacher_id=10,
                         teacher_name="Grace Alexander", grade_level="K"))
    repo.add(ClassRecord(id=101, name="K-B", school_id=1, teacher_id=11,
                         teacher_name="Peter Mathurin", grade_level="K"))
    repo.add(ClassRecord(id=200, name="K-C", school_id=2, teacher_id=None, grade_level="K"))

    repo.add(StudentRecord(id=1000, first_name="Anya", last_name="Baptiste", school_id=1, class_id=100))
    repo.add(StudentRecord(id=1001, first_name="Marcus", last_name="Charles", school_id=1, class_id=100))
    repo.add(StudentRecord(id=1002, first_name="Sophia", last_name="Joseph", school_id=1, class_id=101))
    repo.add(StudentRecord(id=2000, first_name="Noah", last_name="Anthony", school_id=2, class_id=200))

    literacy = repo.add(SubjectRecord(id=1, name="Language and Literacy", display_order=1))
    maths = repo.add(SubjectRecord(id=2, name="Mathematics", display_order=2))
    speaking = repo.add(StrandRecord(id=1, name="Speaking", subject_id=1, display_order=1))
    reading = repo.add(StrandRecord(id=2, name="Reading", subject_id=1, display_order=2))
    number = repo.add(StrandRecord(id=3, name="Number", subject_id=2, display_order=1))
    for outcome in (
        make_outcomes(literacy, speaking, 3, start_id=1)
        + make_outcomes(literacy, reading, 2, start_id=4)
        + make_outcomes(maths, number, 3, start_id=6)
    ):
        repo.add(outcome)

    repo.add(TermRecord(id=1, name="Term 1", school_year="2024-2025", school_id=1))
    repo.add(TermRecord(id=2, name="Term 2", school_year="2024-2025", school_id=1))
    repo.calls.clear()
    return repo


@pytest.fixture
def sql_session():
    """
    In-memory SQLite session seeded with one school, two classes, three
    students and a four-outcome curriculum.
    """
    from datetime import datetime

    from sqlalchemy import create_engine
    from sqlalchemy.orm import sessionmaker
    from sqlalchemy.pool import StaticPool

    from database import (
        AcademicTerm, Assessment, Base, Country, LearningOutcome, School, SchoolClass,
        Strand, Student, StudentGuardian, Subject, User, UserAssignment,
    )

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = Session()

    country = Country(id=1, name="Saint Lucia", code="LCA")
    school = School(id=1, name="Castries Primary", country_id=1)
    other_school = School(id=2, name="Soufriere Primary", country_id=1)
    db.add_all([country, school, other_school])
    db.add_all([
        User(id=1, first_name="Sys", last_name="Admin", email="admin@example.org", role="SUPERUSER"),
        User(id=2, first_name="Dee", last_name="Felix", email="principal@example.org", role="SCHOOL_ADMIN"),
        User(id=10, first_name="Grace", last_name="Alexander", email="t1@example.org", role="TEACHER"),
        User(id=11, first_name="Peter", last_name="Mathurin", email="t2@example.org", role="TEACHER"),
        User(id=20, first_name="Joan", last_name="Baptiste", email="parent@example.org", role="PARENT_STUDENT"),
    ])
    db.flush()
    db.add_all([
        UserAssignment(user_id=2, school_id=1),
        UserAssignment(user_id=10, school_id=1),
        UserAssignment(user_id=11, school_id=1),
        UserAssignment(user_id=20, school_id=1),
        SchoolClass(id=100, name="K-A", grade_level="K", school_id=1, teacher_id=10),
        SchoolClass(id=101, name="K-B", grade_level="K", school_id=1, teacher_id=11),
        AcademicTerm(id=1, name="Term 1", school_year="2024-2025", school_id=1,
                     start_date=datetime(2024, 9, 1), end_date=datetime(2024, 12, 20)),
    ])
    db.flush()
    db.add_all([
        Student(id=1000, first_name="Anya", last_name="Baptiste", school_id=1, class_id=100),
        Student(id=1001, first_name="Marcus", last_name="Charles", school_id=1, class_id=100),
        Student(id=1002, first_name="Sophia", last_name="Joseph", school_id=1, class_id=101),
        Student(id=1003, first_name="Old", last_name="Leaver", school_id=1, class_id=100, is_active=False),
        Subject(id=1, name="Mathematics", display_order=2),
        Subject(id=2, name="Language and Literacy", display_order=1),
    ])
    db.flush()
    db.add_all([
        StudentGuardian(user_id=20, student_id=1000),
        Strand(id=1, name="Number", subject_id=1, display_order=1),
        Strand(id=2, name="Reading", subject_id=2, display_order=1),
    ])
    db.flush()
    db.add_all([
        LearningOutcome(id=1, code="MA-1", description="Counts to 20", strand_id=1, display_order=1),
        LearningOutcome(id=2, code="MA-2", description="Recognises numerals", strand_id=1, display_order=2),
        LearningOutcome(id=3, code="LL-1", description="Recognises letters", strand_id=2, display_order=1),
        LearningOutcome(id=4, code="LL-2", description="Identifies sounds", strand_id=2, display_order=2),
    ])
    db.flush()
    db.add_all([
        Assessment(id=1, student_id=1000, learning_outcome_id=1, term_id=1, assessed_by=10,
                   created_by=10, assessment_date=date(2024, 9, 20), rating="NEEDS_PRACTICE"),
        Assessment(id=2, student_id=1000, learning_outcome_id=1, term_id=1, assessed_by=10,
                   created_by=10, assessment_date=date(2024, 10, 20), rating="MEETING"),
        Assessment(id=3, student_id=1001, learning_outcome_id=3, term_id=1, assessed_by=10,
                   created_by=10, assessment_date=date(2024, 10, 20), rating="EASILY_MEETING"),
        Assessment(id=4, student_id=1002, learning_outcome_id=1, term_id=1, assessed_by=11,
                   created_by=11, assessment_date=date(2024, 10, 21), rating="MEETING"),
    ])
    db.commit()

    yield db

    db.close()
    Base.metadata.drop_all(bind=engine)
    engine.dispose()
