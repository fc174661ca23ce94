"""Database module."""
from .models import (
    Base,
    UserRole,
    Rating,
    Country,
    School,
    User,
    UserAssignment,
    SchoolClass,
    Student,
    StudentGuardian,
    Subject,
    Strand,
    LearningOutcome,
    AcademicTerm,
    Assessment,
)
from .connection import engine, SessionLocal, get_db, get_db_context, init_db
from .repository import SqlAssessmentRepository

__all__ = [
    "Base",
    "UserRole",
    "Rating",
    "Country",
    "School",
    "User",
    "UserAssignment",
    "SchoolClass",
    "Student",
    "StudentGuardian",
    "Subject",
    "Strand",
    "LearningOutcome",
    "AcademicTerm",
    "Assessment",
    "engine",
    "SessionLocal",
    "get_db",
    "get_db_context",
    "init_db",
    "SqlAssessmentRepository",
]
