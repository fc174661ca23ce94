"""
Unit tests for the aggregation engine.
"""
from datetime import date

import pytest

from reporting import (
    Curriculum,
    StrandRecord,
    StudentRecord,
    SubjectRecord,
    build_class_summary,
    build_outcome_report,
    build_school_summary,
    build_strand_report,
    build_student_report,
    build_student_subject_report,
    completion_rate,
    latest_assessment,
    performance_score,
    rating_distribution,
)
from reporting.aggregation import round_half_up

from conftest import assessment, make_outcomes

EM, M, NP = "EASILY_MEETING", "MEETING", "NEEDS_PRACTICE"

SUBJECT = SubjectRecord(id=1, name="Mathematics", display_order=1)
STRAND = StrandRecord(id=1, name="Number", subject_id=1, display_order=1)


@pytest.fixture
def curriculum():
    """Eight outcomes in one strand."""
    return Curriculum(make_outcomes(SUBJECT, STRAND, 8))


def student(id, class_id=100):
    return StudentRecord(id=id, first_name=f"First{id}", last_name=f"Last{id}", school_id=1, class_id=class_id)


class TestPrimitives:
    """Tests for distribution, score and completion."""

    def test_distribution_sums_to_total(self):
        """Test buckets sum to total for well-formed ratings."""
        records = [assessment(i, 1, 1, r) for i, r in enumerate([EM, EM, M, NP], start=1)]
        dist = rating_distribution(records)
        assert dist == {EM: 2, M: 1, NP: 1, "total": 4}

    def test_distribution_keeps_unknown_in_total(self):
        """Test unknown ratings count in total but in no bucket."""
        records = [assessment(1, 1, 1, EM), assessment(2, 1, 1, "LEGACY")]
        dist = rating_distribution(records)
        assert dist["total"] == 2
        assert dist[EM] + dist[M] + dist[NP] == 1

    def test_empty_inputs(self):
        """Test empty inputs give zeros."""
        assert rating_distribution([]) == {EM: 0, M: 0, NP: 0, "total": 0}
        assert performance_score([]) == 0
        assert completion_rate(0, 0) == 0

    def test_performance_score(self):
        """Test weighted score and its bounds."""
        assert performance_score([assessment(1, 1, 1, EM)]) == 100
        assert performance_score([assessment(1, 1, 1, NP)]) == 33
        # (3 + 2) / 6 = 83.33
        assert performance_score([assessment(1, 1, 1, EM), assessment(2, 1, 1, M)]) == 83
        # (2 + 1) / 6 = 50
        assert performance_score([assessment(1, 1, 1, M), assessment(2, 1, 1, NP)]) == 50

    def test_performance_score_never_drops_as_ratings_improve(self):
        """Test swapping NEEDS_PRACTICE for EASILY_MEETING never lowers the score."""
        ratings = [NP] * 4
        scores = []
        for i in range(len(ratings) + 1):
            if i:
                ratings[i - 1] = EM
            records = [assessment(n, 1, n, r) for n, r in enumerate(ratings, start=1)]
            scores.append(performance_score(records))

        assert scores == sorted(scores)
        assert scores[0] == 33
        assert scores[-1] == 100

    def test_round_half_up(self):
        """Test .5 rounds upwards."""
        assert round_half_up(62.5) == 63
        assert round_half_up(0.5) == 1
        assert round_half_up(66.49) == 66

    def test_completion_rate_bounded(self):
        """Test completion rate stays within 0..100."""
        assert completion_rate(3, 8) == 38
        assert completion_rate(8, 8) == 100
        assert completion_rate(10, 8) == 100

    def test_latest_assessment_by_date(self):
        """Test the latest date wins."""
        records = [
            assessment(1, 1, 1, NP, when=date(2024, 9, 1)),
            assessment(2, 1, 1, EM, when=date(2024, 11, 1)),
            assessment(3, 1, 1, M, when=date(2024, 10, 1)),
        ]
        assert latest_assessment(records).id == 2

    def test_latest_assessment_same_date_tie(self):
        """Test the higher id wins on the same date."""
        records = [
            assessment(7, 1, 1, NP, when=date(2024, 10, 1)),
            assessment(9, 1, 1, EM, when=date(2024, 10, 1)),
            assessment(8, 1, 1, M, when=date(2024, 10, 1)),
        ]
        assert latest_assessment(records).id == 9
        assert latest_assessment([]) is None


class TestStudentReports:
    """Tests for the learner reports."""

    def test_student_report_groups_by_subject_and_strand(self, curriculum):
        """Test grouping and completion against the whole curriculum."""
        records = [
            assessment(1, 1, 1, NP, when=date(2024, 9, 1)),
            assessment(2, 1, 1, EM, when=date(2024, 10, 1)),
            assessment(3, 1, 2, M),
        ]
        report = build_student_report(records, curriculum)

        stats = report["overall_stats"]
        assert stats["total_assessments"] == 3
        assert stats["assessed_outcomes"] == 2
        assert stats["total_outcomes"] == 8
        assert stats["completion_rate"] == 25

        subject = report["subjects"][0]
        outcome = subject["strands"][0]["outcomes"][0]
        assert outcome["latest_rating"] == EM
        assert outcome["assessment_count"] == 2
        assert report["assessments"][0]["id"] == 3

    def test_student_report_empty(self, curriculum):
        """Test no assessments gives a valid empty report."""
        report = build_student_report([], curriculum)
        assert report["subjects"] == []
        assert report["overall_stats"]["completion_rate"] == 0
        assert report["overall_stats"]["performance_score"] == 0

    def test_student_subject_report_date_columns(self, curriculum):
        """Test one column per date, higher id filling a shared cell."""
        records = [
            assessment(1, 1, 1, NP, when=date(2024, 9, 1)),
            assessment(5, 1, 1, EM, when=date(2024, 10, 1)),
            assessment(4, 1, 1, M, when=date(2024, 10, 1)),
        ]
        report = build_student_subject_report([STRAND], curriculum.outcomes, records, 8)

        assert report["assessment_dates"] == ["2024-09-01", "2024-10-01"]
        cells = report["strands"][0]["outcomes"][0]["assessments_by_date"]
        assert cells["2024-10-01"]["rating"] == EM
        assert report["summary"]["completion_rate"] == 13


class TestClassReports:
    """Tests for strand, outcome and class reports."""

    def test_scenario_latest_rating_wins(self):
        """Test three dated assessments report the newest rating."""
        records = [
            assessment(1, 1, 1, NP, when=date(2024, 9, 1)),
            assessment(2, 1, 1, M, when=date(2024, 10, 1)),
            assessment(3, 1, 1, EM, when=date(2024, 11, 1)),
        ]
        report = build_outcome_report([student(1)], records)
        result = report["student_results"][0]
        assert result["latest_rating"] == EM
        assert result["assessment_count"] == 3
        assert [h["id"] for h in result["history"]] == [3, 2, 1]

    def test_outcome_report_counts_unassessed(self):
        """Test overall stats come from latest records only."""
        records = [
            assessment(1, 1, 1, NP, when=date(2024, 9, 1)),
            assessment(2, 1, 1, EM, when=date(2024, 10, 1)),
        ]
        report = build_outcome_report([student(1), student(2)], records)
        stats = report["overall_stats"]
        assert stats["assessed_students"] == 1
        assert stats["not_assessed"] == 1
        assert stats["rating_distribution"]["total"] == 1
        assert report["student_results"][1]["latest_rating"] is None

    def test_strand_matrix_cells(self, curriculum):
        """Test one cell per student and outcome."""
        outcomes = curriculum.outcomes[:4]
        records = [
            assessment(1, 1, 1, NP, when=date(2024, 9, 1)),
            assessment(2, 1, 1, EM, when=date(2024, 10, 1)),
            assessment(3, 1, 2, M),
        ]
        report = build_strand_report(outcomes, [student(1), student(2)], records, 8)

        first, second = report["student_matrix"]
        assert first["outcome_ratings"] == {1: EM, 2: M, 3: None, 4: None}
        assert first["completion_rate"] == 50
        assert all(v is None for v in second["outcome_ratings"].values())
        assert report["overall_stats"]["average_completion"] == 25
        assert report["overall_stats"]["total_outcomes"] == 8

    def test_strand_matrix_ignores_input_order(self, curriculum):
        """Test the later-dated record wins even with a lower id listed first."""
        outcomes = curriculum.outcomes[:2]
        records = [
            assessment(1, 1, 1, EM, when=date(2024, 11, 1)),
            assessment(5, 1, 1, NP, when=date(2024, 9, 1)),
        ]
        for ordering in (records, list(reversed(records))):
            report = build_strand_report(outcomes, [student(1)], ordering, 8)
            assert report["student_matrix"][0]["outcome_ratings"][1] == EM

    def test_scenario_class_summary(self, curriculum):
        """Test attention list and completion against the full curriculum."""
        ratings = [EM, EM, EM, M, M]
        records = [assessment(i, 1, i, r) for i, r in enumerate(ratings, start=1)]
        report = build_class_summary([student(1), student(2)], records, curriculum)

        assert report["overall_stats"]["student_count"] == 2
        assert report["students_needing_attention"] == []
        assessed = report["student_stats"][0]
        assert assessed["rating_distribution"][EM] == 3
        assert assessed["rating_distribution"][M] == 2
        # 5 of 8 curriculum outcomes, not 5 of 5
        assert assessed["completion_rate"] == 63
        assert report["student_stats"][1]["completion_rate"] == 0

    def test_attention_threshold_inclusive(self, curriculum):
        """Test a 50% NEEDS_PRACTICE share counts as needing attention."""
        records = [
            assessment(1, 1, 1, NP),
            assessment(2, 1, 2, EM),
            assessment(3, 2, 1, NP),
            assessment(4, 2, 2, NP),
            assessment(5, 2, 3, M),
        ]
        report = build_class_summary([student(1), student(2)], records, curriculum)
        ids = [s["student"]["id"] for s in report["students_needing_attention"]]
        assert ids == [2, 1]


class TestSchoolSummary:
    """Tests for the school summary."""

    def test_classes_needing_attention(self, curriculum):
        """Test low-scoring classes are listed, lowest first, unassigned teachers labelled."""
        from reporting import ClassRecord

        classes = [
            ClassRecord(id=100, name="K-A", school_id=1, teacher_name="Grace Alexander"),
            ClassRecord(id=101, name="K-B", school_id=1),
            ClassRecord(id=102, name="K-C", school_id=1),
        ]
        students = [student(1, 100), student(2, 101), student(3, 102)]
        records = [
            assessment(1, 1, 1, EM),
            assessment(2, 2, 1, NP),
            assessment(3, 2, 2, M),
        ]
        report = build_school_summary(classes, students, records, curriculum)

        stats = {c["class_id"]: c for c in report["class_stats"]}
        assert stats[101]["teacher"] == "Unassigned"
        assert stats[100]["performance_score"] == 100
        # (1 + 2) / 6
        assert stats[101]["performance_score"] == 50
        attention = [c["class_id"] for c in report["classes_needing_attention"]]
        assert attention == [101]
        assert report["overall_stats"]["class_count"] == 3

    def test_attention_list_capped_at_five(self, curriculum):
        """Test only the five lowest classes below 60 are listed, lowest first."""
        from reporting import ClassRecord

        ratings_by_class = {
            101: [NP],                  # 33
            102: [NP, M],               # 50
            103: [NP, NP, M],           # 44
            104: [NP, M, M],            # 56
            105: [NP, NP, NP, M],       # 42
            106: [NP, NP, M, M, M],     # 53
            107: [M],                   # 67
            108: [NP, NP, NP, NP, M],   # 40
        }
        classes = [ClassRecord(id=cid, name=f"K-{cid}", school_id=1) for cid in ratings_by_class]
        students = [student(cid, cid) for cid in ratings_by_class]
        records = []
        for cid, ratings in ratings_by_class.items():
            for outcome_id, rating in enumerate(ratings, start=1):
                records.append(assessment(len(records) + 1, cid, outcome_id, rating))

        report = build_school_summary(classes, students, records, curriculum)

        attention = report["classes_needing_attention"]
        assert len(attention) == 5
        assert [c["class_id"] for c in attention] == [101, 108, 105, 103, 102]
        scores = [c["performance_score"] for c in attention]
        assert scores == sorted(scores)

    def test_class_student_count_is_active_roster(self, curriculum):
        """Test class student counts follow the students passed in."""
        from reporting import ClassRecord

        classes = [ClassRecord(id=100, name="K-A", school_id=1)]
        report = build_school_summary(classes, [student(1), student(2)], [], curriculum)
        assert report["class_stats"][0]["student_count"] == 2
        assert report["classes_needing_attention"] == []
