"""
Database models for the Kindergarten Assessment system.
Defines the tenant hierarchy (country -> school -> class -> student),
the curriculum (subject -> strand -> learning outcome) and the
assessment fact table.
"""
from sqlalchemy import (
    Boolean, Column, Date, DateTime, Enum, ForeignKey, Integer, String, Text,
    UniqueConstraint, CheckConstraint,
)
from sqlalchemy.orm import relationship, declarative_base, validates
from sqlalchemy.sql import func

from reporting.records import Rating, UserRole

Base = declarative_base()


class Country(Base):
    """Countries table."""
    __tablename__ = "countries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    code = Column(String(3), nullable=False, unique=True)

    schools = relationship("School", back_populates="country")

    def __repr__(self):
        return f"<Country(id={self.id}, code='{self.code}')>"


class School(Base):
    """
    Schools table - the tenant unit for access scoping.

    Attributes:
        id: Unique identifier
        name: School name
        country_id: Country the school belongs to
    """
    __tablename__ = "schools"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    country_id = Column(Integer, ForeignKey("countries.id", ondelete="SET NULL"), nullable=True)

    country = relationship("Country", back_populates="schools")
    classes = relationship("SchoolClass", back_populates="school")
    students = relationship("Student", back_populates="school")
    terms = relationship("AcademicTerm", back_populates="school")

    def __repr__(self):
        return f"<School(id={self.id}, name='{self.name}')>"


class User(Base):
    """
    Users table - every actor that can log in.

    Attributes:
        id: Unique identifier
        first_name / last_name: Display name
        email: Login email
        role: One of UserRole
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    role = Column(
        Enum(*[r.value for r in UserRole], name="user_role"),
        nullable=False,
    )
    is_active = Column(Boolean, nullable=False, default=True)

    assignments = relationship("UserAssignment", back_populates="user", cascade="all, delete-orphan")
    classes = relationship("SchoolClass", back_populates="teacher")
    guardian_links = relationship("StudentGuardian", back_populates="user", cascade="all, delete-orphan")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"


class UserAssignment(Base):
    """
    Links a user to exactly one school or exactly one country.
    """
    __tablename__ = "user_assignments"
    __table_args__ = (
        CheckConstraint(
            "(school_id IS NULL) <> (country_id IS NULL)",
            name="ck_assignment_school_xor_country",
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    school_id = Column(Integer, ForeignKey("schools.id", ondelete="CASCADE"), nullable=True)
    country_id = Column(Integer, ForeignKey("countries.id", ondelete="CASCADE"), nullable=True)

    user = relationship("User", back_populates="assignments")
    school = relationship("School")
    country = relationship("Country")

    @validates("school_id", "country_id")
    def _validate_target(self, key, value):
        other = self.country_id if key == "school_id" else self.school_id
        if value is not None and other is not None:
            raise ValueError("An assignment links to a school or a country, not both")
        return value

    def __repr__(self):
        return f"<UserAssignment(user_id={self.user_id}, school_id={self.school_id}, country_id={self.country_id})>"


class SchoolClass(Base):
    """
    Classes table. A class belongs to one school and has at most one teacher.
    """
    __tablename__ = "classes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    grade_level = Column(String(50), nullable=False, default="K")
    academic_year = Column(String(20), nullable=True)
    school_id = Column(Integer, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False)
    teacher_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    school = relationship("School", back_populates="classes")
    teacher = relationship("User", back_populates="classes")
    students = relationship("Student", back_populates="school_class")

    def __repr__(self):
        return f"<SchoolClass(id={self.id}, name='{self.name}')>"


class Student(Base):
    """
    Students table.

    Attributes:
        id: Unique identifier
        student_id_number: School-issued identifier
        school_id: Owning school (mandatory)
        class_id: Current class (optional)
        is_active: Inactive students are left out of class reports
    """
    __tablename__ = "students"
    __table_args__ = (
        UniqueConstraint("school_id", "student_id_number", name="uq_student_school_number"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    student_id_number = Column(String(50), nullable=True)
    school_id = Column(Integer, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False)
    class_id = Column(Integer, ForeignKey("classes.id", ondelete="SET NULL"), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    school = relationship("School", back_populates="students")
    school_class = relationship("SchoolClass", back_populates="students")
    assessments = relationship("Assessment", back_populates="student", cascade="all, delete-orphan")
    guardians = relationship("StudentGuardian", back_populates="student", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Student(id={self.id}, name='{self.first_name} {self.last_name}')>"


class StudentGuardian(Base):
    """Association table linking PARENT_STUDENT users to students."""
    __tablename__ = "student_guardians"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), primary_key=True)

    user = relationship("User", back_populates="guardian_links")
    student = relationship("Student", back_populates="guardians")


class Subject(Base):
    """Curriculum subjects."""
    __tablename__ = "subjects"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    display_order = Column(Integer, nullable=False, default=0)

    strands = relationship("Strand", back_populates="subject", order_by="Strand.display_order")

    def __repr__(self):
        return f"<Subject(id={self.id}, name='{self.name}')>"


class Strand(Base):
    """Groups related learning outcomes within a subject."""
    __tablename__ = "strands"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    display_order = Column(Integer, nullable=False, default=0)
    subject_id = Column(Integer, ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False)

    subject = relationship("Subject", back_populates="strands")
    learning_outcomes = relationship(
        "LearningOutcome", back_populates="strand", order_by="LearningOutcome.display_order"
    )

    def __repr__(self):
        return f"<Strand(id={self.id}, name='{self.name}')>"


class LearningOutcome(Base):
    """
    The finest-grained curriculum unit a student is rated against.
    """
    __tablename__ = "learning_outcomes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(50), nullable=False, unique=True)
    description = Column(Text, nullable=False)
    display_order = Column(Integer, nullable=False, default=0)
    strand_id = Column(Integer, ForeignKey("strands.id", ondelete="CASCADE"), nullable=False)

    strand = relationship("Strand", back_populates="learning_outcomes")

    def __repr__(self):
        return f"<LearningOutcome(id={self.id}, code='{self.code}')>"


class AcademicTerm(Base):
    """Academic terms. A term belongs to one school and ends after it starts."""
    __tablename__ = "academic_terms"
    __table_args__ = (
        CheckConstraint("end_date > start_date", name="ck_term_end_after_start"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    school_year = Column(String(20), nullable=False)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    school_id = Column(Integer, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False)

    school = relationship("School", back_populates="terms")

    @validates("end_date")
    def _validate_end_date(self, key, value):
        if self.start_date is not None and value is not None and value <= self.start_date:
            raise ValueError("Term end date must be after its start date")
        return value

    def __repr__(self):
        return f"<AcademicTerm(id={self.id}, name='{self.name}', school_year='{self.school_year}')>"


class Assessment(Base):
    """
    Assessments table - one rating of one student against one outcome.
    Several rows may exist for the same (student, outcome) pair.

    Attributes:
        id: Unique identifier, increasing with insertion order
        student_id: Assessed student
        learning_outcome_id: Outcome rated
        term_id: Academic term
        assessed_by: Actor who performed the assessment
        created_by: Actor who recorded it (audit)
        assessment_date: Calendar date of the observation
        rating: One of Rating (stored as text)
        comment: Optional free text
    """
    __tablename__ = "assessments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False)
    learning_outcome_id = Column(Integer, ForeignKey("learning_outcomes.id", ondelete="CASCADE"), nullable=False)
    term_id = Column(Integer, ForeignKey("academic_terms.id", ondelete="CASCADE"), nullable=False)
    assessed_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    assessment_date = Column(Date, nullable=False)
    rating = Column(String(32), nullable=False)
    comment = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    student = relationship("Student", back_populates="assessments")
    learning_outcome = relationship("LearningOutcome")
    term = relationship("AcademicTerm")
    assessor = relationship("User", foreign_keys=[assessed_by])
    creator = relationship("User", foreign_keys=[created_by])

    def __repr__(self):
        return f"<Assessment(id={self.id}, student_id={self.student_id}, rating='{self.rating}')>"
