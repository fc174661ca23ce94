"""
Aggregation engine for assessment reports.

Pure functions: they take resolved records and return report dicts.
Nothing here reads storage or raises domain errors; an empty input
produces an empty (but valid) report.

Rating weights: EASILY_MEETING=3, MEETING=2, NEEDS_PRACTICE=1.
"""
import logging
import math
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .records import (
    AssessmentRecord,
    ClassRecord,
    Curriculum,
    OutcomeRecord,
    Rating,
    StrandRecord,
    StudentRecord,
)

logger = logging.getLogger(__name__)

RATING_WEIGHTS = {
    Rating.EASILY_MEETING.value: 3,
    Rating.MEETING.value: 2,
    Rating.NEEDS_PRACTICE.value: 1,
}
MAX_WEIGHT = 3

# Students whose NEEDS_PRACTICE share reaches this percentage need attention
STUDENT_ATTENTION_PERCENT = 50
# Classes scoring below this need attention
CLASS_ATTENTION_SCORE = 60
CLASS_ATTENTION_LIMIT = 5


def round_half_up(value: float) -> int:
    """Round .5 upwards (round() would round half to even)."""
    return int(math.floor(value + 0.5))


# ============== Primitive reducers ==============

def rating_distribution(assessments: Sequence[AssessmentRecord]) -> Dict[str, int]:
    """
    Tally ratings.

    Unknown rating values land in no bucket, but `total` is always the
    input length, so the buckets can sum to less than `total`.
    """
    distribution = {
        Rating.EASILY_MEETING.value: 0,
        Rating.MEETING.value: 0,
        Rating.NEEDS_PRACTICE.value: 0,
        "total": len(assessments),
    }
    unknown = 0
    for a in assessments:
        rating = _rating_value(a.rating)
        if rating in RATING_WEIGHTS:
            distribution[rating] += 1
        else:
            unknown += 1
    if unknown:
        logger.warning("%d assessment(s) carry an unknown rating value", unknown)
    return distribution


def performance_score(assessments: Sequence[AssessmentRecord]) -> int:
    """Weighted average of ratings as an integer percentage; 0 when empty."""
    if not assessments:
        return 0
    total = sum(RATING_WEIGHTS.get(_rating_value(a.rating), 0) for a in assessments)
    return round_half_up(total / (len(assessments) * MAX_WEIGHT) * 100)


def completion_rate(assessed_outcomes: int, total_outcomes: int) -> int:
    """Percentage of curriculum outcomes with at least one assessment."""
    if not total_outcomes:
        return 0
    return min(100, round_half_up(assessed_outcomes / total_outcomes * 100))


def latest_assessment(assessments: Iterable[AssessmentRecord]) -> Optional[AssessmentRecord]:
    """
    The current observation: latest assessment date, then highest id.
    """
    return max(assessments, key=_recency_key, default=None)


def history_newest_first(assessments: Iterable[AssessmentRecord]) -> List[AssessmentRecord]:
    return sorted(assessments, key=_recency_key, reverse=True)


def summarize(assessments: Sequence[AssessmentRecord]) -> Dict[str, Any]:
    """Distribution and score, present at every aggregation level."""
    return {
        "rating_distribution": rating_distribution(assessments),
        "performance_score": performance_score(assessments),
    }


def _rating_value(rating) -> str:
    return getattr(rating, "value", rating)


def _recency_key(assessment: AssessmentRecord):
    return (assessment.assessment_date, assessment.id)


def _group_by(assessments: Iterable[AssessmentRecord], attr: str) -> Dict[int, List[AssessmentRecord]]:
    groups: Dict[int, List[AssessmentRecord]] = defaultdict(list)
    for a in assessments:
        groups[getattr(a, attr)].append(a)
    return groups


def _distinct_outcomes(assessments: Iterable[AssessmentRecord]) -> int:
    return len({a.learning_outcome_id for a in assessments})


def _coverage(assessments: Sequence[AssessmentRecord], total_outcomes: int) -> Dict[str, Any]:
    assessed = _distinct_outcomes(assessments)
    return {
        "total_assessments": len(assessments),
        "assessed_outcomes": assessed,
        "completion_rate": completion_rate(assessed, total_outcomes),
    }


# ============== Student report (by learner) ==============

def build_student_report(
    assessments: Sequence[AssessmentRecord],
    curriculum: Curriculum,
) -> Dict[str, Any]:
    """
    One student's performance across all subjects.

    Assessments are grouped by subject, then by strand, in the order the
    groups are first met; the output is sorted by display order.
    """
    by_subject: Dict[int, Dict[str, Any]] = {}
    for a in assessments:
        outcome = curriculum.outcome(a.learning_outcome_id)
        if outcome is None:
            continue
        subject = by_subject.setdefault(outcome.subject.id, {
            "subject": outcome.subject,
            "assessments": [],
            "strands": {},
        })
        subject["assessments"].append(a)
        strand = subject["strands"].setdefault(outcome.strand.id, {
            "strand": outcome.strand,
            "assessments": [],
        })
        strand["assessments"].append(a)

    subjects = []
    for group in by_subject.values():
        subject = group["subject"]
        subject_outcomes = len(curriculum.outcomes_for_subject(subject.id))
        strands = [
            _student_strand_entry(s["strand"], s["assessments"], curriculum)
            for s in group["strands"].values()
        ]
        strands.sort(key=lambda s: s["display_order"])
        assessed = _distinct_outcomes(group["assessments"])
        subjects.append({
            "subject_id": subject.id,
            "subject_name": subject.name,
            "display_order": subject.display_order,
            "strands": strands,
            **summarize(group["assessments"]),
            "total_assessments": len(group["assessments"]),
            "subject_outcomes": subject_outcomes,
            "assessed_outcomes": assessed,
            "completion_rate": completion_rate(assessed, subject_outcomes),
        })
    subjects.sort(key=lambda s: s["display_order"])

    overall_stats = {
        **_coverage(assessments, curriculum.total_outcomes),
        "total_outcomes": curriculum.total_outcomes,
        **summarize(assessments),
    }

    return {
        "overall_stats": overall_stats,
        "subjects": subjects,
        "assessments": [a.to_dict() for a in history_newest_first(assessments)],
    }


def _student_strand_entry(
    strand: StrandRecord,
    assessments: List[AssessmentRecord],
    curriculum: Curriculum,
) -> Dict[str, Any]:
    outcomes = []
    for outcome_id, outcome_assessments in _group_by(assessments, "learning_outcome_id").items():
        outcome = curriculum.outcome(outcome_id)
        latest = latest_assessment(outcome_assessments)
        outcomes.append({
            **outcome.to_dict(),
            "latest_rating": _rating_value(latest.rating),
            "assessed_at": latest.assessment_date.isoformat(),
            "comment": latest.comment,
            "assessment_count": len(outcome_assessments),
        })
    outcomes.sort(key=lambda o: o["display_order"])

    return {
        "strand_id": strand.id,
        "strand_name": strand.name,
        "display_order": strand.display_order,
        **summarize(assessments),
        "total_assessments": len(assessments),
        "outcomes": outcomes,
    }


# ============== Student + subject report ==============

def build_student_subject_report(
    strands: Sequence[StrandRecord],
    outcomes: Sequence[OutcomeRecord],
    assessments: Sequence[AssessmentRecord],
    total_outcomes: int,
) -> Dict[str, Any]:
    """
    One student's assessments in one subject, laid out by strand and
    outcome with one column per assessment date.

    When two assessments share an outcome and a date, the one with the
    higher id fills the cell.
    """
    by_outcome = _group_by(sorted(assessments, key=_recency_key), "learning_outcome_id")
    outcomes_by_strand: Dict[int, List[OutcomeRecord]] = defaultdict(list)
    for outcome in outcomes:
        outcomes_by_strand[outcome.strand.id].append(outcome)

    strand_data = []
    for strand in strands:
        strand_outcomes = []
        for outcome in outcomes_by_strand.get(strand.id, []):
            by_date = {}
            for a in by_outcome.get(outcome.id, []):
                by_date[a.assessment_date.isoformat()] = {
                    "rating": _rating_value(a.rating),
                    "comment": a.comment or "",
                }
            strand_outcomes.append({**outcome.to_dict(), "assessments_by_date": by_date})
        strand_data.append({"id": strand.id, "name": strand.name, "outcomes": strand_outcomes})

    subject_outcomes = len(outcomes)
    assessed = _distinct_outcomes(assessments)
    return {
        "assessment_dates": sorted({a.assessment_date.isoformat() for a in assessments}),
        "strands": strand_data,
        "summary": {
            "subject_outcomes": subject_outcomes,
            "total_outcomes": total_outcomes,
            "assessed_outcomes": assessed,
            "completion_rate": completion_rate(assessed, subject_outcomes),
            "total_assessments": len(assessments),
            **summarize(assessments),
        },
    }


# ============== Strand report (student x outcome matrix) ==============

def build_strand_report(
    outcomes: Sequence[OutcomeRecord],
    students: Sequence[StudentRecord],
    assessments: Sequence[AssessmentRecord],
    total_outcomes: int,
) -> Dict[str, Any]:
    """
    Every student's current rating for every outcome of a strand.

    The matrix has one cell per (student, outcome) pair: the rating of
    the latest assessment, or None when the pair was never assessed.
    """
    by_student = _group_by(assessments, "student_id")
    strand_outcomes = len(outcomes)

    student_matrix = []
    for student in students:
        student_assessments = by_student.get(student.id, [])
        by_outcome = _group_by(student_assessments, "learning_outcome_id")
        outcome_ratings = {}
        for outcome in outcomes:
            latest = latest_assessment(by_outcome.get(outcome.id, []))
            outcome_ratings[outcome.id] = _rating_value(latest.rating) if latest else None
        assessed_count = sum(1 for r in outcome_ratings.values() if r is not None)
        student_matrix.append({
            "student": student.to_dict(),
            "outcome_ratings": outcome_ratings,
            **summarize(student_assessments),
            "assessed_count": assessed_count,
            "strand_outcomes": strand_outcomes,
            "completion_rate": completion_rate(assessed_count, strand_outcomes),
        })

    by_outcome = _group_by(assessments, "learning_outcome_id")
    outcome_stats = []
    for outcome in outcomes:
        outcome_assessments = by_outcome.get(outcome.id, [])
        outcome_stats.append({
            "outcome": outcome.to_dict(),
            **summarize(outcome_assessments),
            "assessed_students": len({a.student_id for a in outcome_assessments}),
        })

    if student_matrix and strand_outcomes:
        average_completion = round_half_up(
            sum(row["assessed_count"] / strand_outcomes * 100 for row in student_matrix)
            / len(student_matrix)
        )
    else:
        average_completion = 0

    overall_stats = {
        "total_students": len(students),
        "strand_outcomes": strand_outcomes,
        "total_outcomes": total_outcomes,
        "total_assessments": len(assessments),
        **summarize(assessments),
        "average_completion": average_completion,
    }

    return {
        "outcomes": [o.to_dict() for o in outcomes],
        "student_matrix": student_matrix,
        "outcome_stats": outcome_stats,
        "overall_stats": overall_stats,
    }


# ============== Outcome report ==============

def build_outcome_report(
    students: Sequence[StudentRecord],
    assessments: Sequence[AssessmentRecord],
) -> Dict[str, Any]:
    """How each student performed on a single outcome, latest first."""
    by_student = _group_by(assessments, "student_id")

    student_results = []
    latest_records = []
    for student in students:
        history = history_newest_first(by_student.get(student.id, []))
        latest = history[0] if history else None
        if latest is not None:
            latest_records.append(latest)
        student_results.append({
            "student": student.to_dict(),
            "latest_rating": _rating_value(latest.rating) if latest else None,
            "latest_date": latest.assessment_date.isoformat() if latest else None,
            "latest_comment": latest.comment if latest else None,
            "assessment_count": len(history),
            "history": [
                {
                    "id": a.id,
                    "rating": _rating_value(a.rating),
                    "date": a.assessment_date.isoformat(),
                    "comment": a.comment,
                    "term_id": a.term_id,
                    "assessed_by": a.assessor_name,
                }
                for a in history
            ],
        })

    overall_stats = {
        "total_students": len(students),
        "assessed_students": len(latest_records),
        "not_assessed": len(students) - len(latest_records),
        **summarize(latest_records),
    }

    return {"student_results": student_results, "overall_stats": overall_stats}


# ============== Class summary ==============

def student_stats(
    student: StudentRecord,
    assessments: Sequence[AssessmentRecord],
    total_outcomes: int,
) -> Dict[str, Any]:
    """Per-student stats; completion is measured against the whole curriculum."""
    return {
        "student": student.to_dict(),
        **_coverage(assessments, total_outcomes),
        **summarize(assessments),
    }


def subject_summary(
    assessments: Sequence[AssessmentRecord],
    curriculum: Curriculum,
) -> List[Dict[str, Any]]:
    """Per-subject stats in subject display order."""
    groups: Dict[int, Dict[str, Any]] = {}
    for a in assessments:
        outcome = curriculum.outcome(a.learning_outcome_id)
        if outcome is None:
            continue
        groups.setdefault(outcome.subject.id, {
            "subject": outcome.subject,
            "assessments": [],
        })["assessments"].append(a)

    summary = []
    for group in groups.values():
        subject = group["subject"]
        summary.append({
            "subject_id": subject.id,
            "subject_name": subject.name,
            "display_order": subject.display_order,
            "total_assessments": len(group["assessments"]),
            **summarize(group["assessments"]),
        })
    summary.sort(key=lambda s: s["display_order"])
    return summary


def needs_practice_share(stats: Dict[str, Any]) -> float:
    total = stats["total_assessments"]
    if not total:
        return 0
    return stats["rating_distribution"][Rating.NEEDS_PRACTICE.value] / total * 100


def build_class_summary(
    students: Sequence[StudentRecord],
    assessments: Sequence[AssessmentRecord],
    curriculum: Curriculum,
) -> Dict[str, Any]:
    """
    Class-wide stats, per student and per subject, and the list of
    students needing attention.
    """
    total_outcomes = curriculum.total_outcomes
    by_student = _group_by(assessments, "student_id")

    stats = [student_stats(s, by_student.get(s.id, []), total_outcomes) for s in students]

    # Ranked by raw NEEDS_PRACTICE count; ties keep class order
    needing_attention = sorted(
        (s for s in stats if needs_practice_share(s) >= STUDENT_ATTENTION_PERCENT),
        key=lambda s: s["rating_distribution"][Rating.NEEDS_PRACTICE.value],
        reverse=True,
    )

    overall_stats = {
        "student_count": len(students),
        **_coverage(assessments, total_outcomes),
        "total_outcomes": total_outcomes,
        **summarize(assessments),
    }

    return {
        "overall_stats": overall_stats,
        "student_stats": stats,
        "subject_summary": subject_summary(assessments, curriculum),
        "students_needing_attention": needing_attention,
    }


# ============== School summary ==============

def build_school_summary(
    classes: Sequence[ClassRecord],
    students: Sequence[StudentRecord],
    assessments: Sequence[AssessmentRecord],
    curriculum: Curriculum,
) -> Dict[str, Any]:
    """
    School-wide stats rolled up per class, plus the (at most five)
    lowest-scoring classes below the attention threshold.
    """
    total_outcomes = curriculum.total_outcomes
    by_student = _group_by(assessments, "student_id")
    students_by_class: Dict[int, List[int]] = defaultdict(list)
    for s in students:
        if s.class_id is not None:
            students_by_class[s.class_id].append(s.id)

    class_stats = []
    for cls in classes:
        student_ids = students_by_class.get(cls.id, [])
        class_assessments = [a for sid in student_ids for a in by_student.get(sid, [])]
        class_stats.append({
            "class_id": cls.id,
            "class_name": cls.name,
            "grade_level": cls.grade_level,
            "teacher": cls.teacher_name or "Unassigned",
            "student_count": len(student_ids),
            **_coverage(class_assessments, total_outcomes),
            **summarize(class_assessments),
        })

    classes_needing_attention = sorted(
        (c for c in class_stats
         if c["performance_score"] < CLASS_ATTENTION_SCORE and c["total_assessments"] > 0),
        key=lambda c: c["performance_score"],
    )[:CLASS_ATTENTION_LIMIT]

    overall_stats = {
        "class_count": len(classes),
        "student_count": len(students),
        **_coverage(assessments, total_outcomes),
        "total_outcomes": total_outcomes,
        **summarize(assessments),
    }

    return {
        "overall_stats": overall_stats,
        "class_stats": class_stats,
        "subject_summary": subject_summary(assessments, curriculum),
        "classes_needing_attention": classes_needing_attention,
    }
