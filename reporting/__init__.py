"""
Reporting module for the Kindergarten Assessment system.

Access scoping, the aggregation engine, report assembly and exports.
Storage is reached only through an injected AssessmentRepository.
"""
from .results import (
    ErrorKind,
    ReportError,
    Result,
    RepositoryError,
)

from .records import (
    UserRole,
    Rating,
    UserRecord,
    SchoolRecord,
    ClassRecord,
    StudentRecord,
    SubjectRecord,
    StrandRecord,
    OutcomeRecord,
    TermRecord,
    AssessmentRecord,
    AssessmentFilter,
    Curriculum,
)

from .repository import AssessmentRepository

from .access import (
    AccessScope,
    AccessScopeResolver,
    Actor,
    Superuser,
    CountryAdmin,
    SchoolAdmin,
    Teacher,
    ParentStudent,
    actor_from_user,
    load_actor,
)

from .aggregation import (
    rating_distribution,
    performance_score,
    completion_rate,
    latest_assessment,
    build_student_report,
    build_student_subject_report,
    build_strand_report,
    build_outcome_report,
    build_class_summary,
    build_school_summary,
)

from .assembler import ReportAssembler, REPORT_TYPES

from .assessments import (
    list_assessments,
    record_assessment,
    change_assessment,
    remove_assessment,
)

from .export import (
    ExportFile,
    export_report,
    report_rows,
    RATING_SYMBOLS,
)

__all__ = [
    # Results
    "ErrorKind",
    "ReportError",
    "Result",
    "RepositoryError",
    # Records
    "UserRole",
    "Rating",
    "UserRecord",
    "SchoolRecord",
    "ClassRecord",
    "StudentRecord",
    "SubjectRecord",
    "StrandRecord",
    "OutcomeRecord",
    "TermRecord",
    "AssessmentRecord",
    "AssessmentFilter",
    "Curriculum",
    # Repository
    "AssessmentRepository",
    # Access
    "AccessScope",
    "AccessScopeResolver",
    "Actor",
    "Superuser",
    "CountryAdmin",
    "SchoolAdmin",
    "Teacher",
    "ParentStudent",
    "actor_from_user",
    "load_actor",
    # Aggregation
    "rating_distribution",
    "performance_score",
    "completion_rate",
    "latest_assessment",
    "build_student_report",
    "build_student_subject_report",
    "build_strand_report",
    "build_outcome_report",
    "build_class_summary",
    "build_school_summary",
    # Assembly
    "ReportAssembler",
    "REPORT_TYPES",
    # Assessments
    "list_assessments",
    "record_assessment",
    "change_assessment",
    "remove_assessment",
    # Export
    "ExportFile",
    "export_report",
    "report_rows",
    "RATING_SYMBOLS",
]
