"""
Export adapter: renders a finished report as CSV or PDF.

Both formats render the same rows, produced by `report_rows`. Nothing in
this module aggregates; it only projects the report dict it is given.
"""
import csv
import io
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4, letter, landscape
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import cm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from .assembler import REPORT_TYPES
from .results import Result, validation_failure

logger = logging.getLogger(__name__)

FORMATS = ("csv", "pdf")

CONTENT_TYPES = {
    "csv": "text/csv",
    "pdf": "application/pdf",
}

RATING_SYMBOLS = {
    "EASILY_MEETING": "+",
    "MEETING": "=",
    "NEEDS_PRACTICE": "x",
}
UNRATED_SYMBOL = "-"

RATING_LABELS = {
    "EASILY_MEETING": "Easily Meeting",
    "MEETING": "Meeting",
    "NEEDS_PRACTICE": "Needs Practice",
}
NOT_ASSESSED = "Not Assessed"

PAGE_SIZES = {"A4": A4, "LETTER": letter}

HEADER_COLOR = colors.HexColor("#1a1a2e")
LIGHT_GREY = colors.HexColor("#f5f5f5")


@dataclass(frozen=True)
class ExportFile:
    content: bytes
    content_type: str
    filename: str


def rating_symbol(rating: Optional[str]) -> str:
    return RATING_SYMBOLS.get(rating, UNRATED_SYMBOL) if rating else UNRATED_SYMBOL


def rating_label(rating: Optional[str]) -> str:
    return RATING_LABELS.get(rating, str(rating)) if rating else NOT_ASSESSED


def _percent(value) -> str:
    return f"{value}%"


def _distribution_cells(distribution: Dict[str, int]) -> List[Any]:
    return [distribution["EASILY_MEETING"], distribution["MEETING"], distribution["NEEDS_PRACTICE"]]


def _name(student: Dict[str, Any]) -> str:
    return f"{student['first_name']} {student['last_name']}"


# ============== Row projections ==============

def _student_rows(report):
    headers = ["Subject", "Strand", "Outcome", "Description", "Rating", "Symbol", "Date", "Comment"]
    rows = []
    for subject in report["subjects"]:
        for strand in subject["strands"]:
            for outcome in strand["outcomes"]:
                rows.append([
                    subject["subject_name"],
                    strand["strand_name"],
                    outcome["code"],
                    outcome["description"],
                    rating_label(outcome["latest_rating"]),
                    rating_symbol(outcome["latest_rating"]),
                    outcome["assessed_at"] or "",
                    outcome["comment"] or "",
                ])
    return headers, rows


def _student_subject_rows(report):
    dates = report["assessment_dates"]
    headers = ["Strand", "Outcome", "Description"] + list(dates)
    rows = []
    for strand in report["strands"]:
        for outcome in strand["outcomes"]:
            by_date = outcome["assessments_by_date"]
            rows.append(
                [strand["name"], outcome["code"], outcome["description"]]
                + [rating_symbol(by_date[d]["rating"]) if d in by_date else UNRATED_SYMBOL for d in dates]
            )
    return headers, rows


def _strand_rows(report):
    outcomes = report["outcomes"]
    headers = ["Student"] + [o["code"] for o in outcomes] + ["Performance Score"]
    rows = []
    for entry in report["student_matrix"]:
        ratings = entry["outcome_ratings"]
        cells = []
        for outcome in outcomes:
            # JSON round trips turn the integer keys into strings
            rating = ratings.get(outcome["id"], ratings.get(str(outcome["id"])))
            cells.append(rating_symbol(rating))
        rows.append([_name(entry["student"])] + cells + [_percent(entry["performance_score"])])
    return headers, rows


def _outcome_rows(report):
    headers = ["Student", "Rating", "Symbol", "Date", "Comment", "Assessments"]
    rows = [
        [
            _name(result["student"]),
            rating_label(result["latest_rating"]),
            rating_symbol(result["latest_rating"]),
            result["latest_date"] or "",
            result["latest_comment"] or "",
            result["assessment_count"],
        ]
        for result in report["student_results"]
    ]
    return headers, rows


def _class_rows(report):
    headers = ["Student", "Assessments", "Outcomes Assessed", "Completion", "Performance Score", "+", "=", "x"]
    rows = [
        [
            _name(stats["student"]),
            stats["total_assessments"],
            stats["assessed_outcomes"],
            _percent(stats["completion_rate"]),
            _percent(stats["performance_score"]),
        ] + _distribution_cells(stats["rating_distribution"])
        for stats in report["student_stats"]
    ]
    return headers, rows


def _school_rows(report):
    headers = ["Class", "Teacher", "Students", "Assessments", "Completion", "Performance Score", "+", "=", "x"]
    rows = [
        [
            stats["class_name"],
            stats["teacher"],
            stats["student_count"],
            stats["total_assessments"],
            _percent(stats["completion_rate"]),
            _percent(stats["performance_score"]),
        ] + _distribution_cells(stats["rating_distribution"])
        for stats in report["class_stats"]
    ]
    return headers, rows


_ROW_BUILDERS = {
    "student": _student_rows,
    "student-subject": _student_subject_rows,
    "strand": _strand_rows,
    "outcome": _outcome_rows,
    "class": _class_rows,
    "school": _school_rows,
}


def report_rows(report_type: str, report: Dict[str, Any]) -> Tuple[List[str], List[List[Any]]]:
    """Project a report into a header row and data rows."""
    return _ROW_BUILDERS[report_type](report)


# ============== Headings and summaries ==============

def report_heading(report_type: str, report: Dict[str, Any]) -> Tuple[str, str]:
    """Title and subtitle for a report."""
    if report_type == "student":
        return "Student Performance Report", _name(report["student"])
    if report_type == "student-subject":
        return "Student Subject Report", f"{_name(report['student'])} - {report['subject']['name']}"
    if report_type == "strand":
        return "Strand Report", f"{report['strand']['name']} - {report['class']['name']}"
    if report_type == "outcome":
        outcome = report["outcome"]
        return "Outcome Report", f"{outcome['code']}: {outcome['description']}"
    if report_type == "class":
        return "Class Summary Report", report["class"]["name"]
    return "School Summary Report", report["school"]["name"]


def report_summary(report_type: str, report: Dict[str, Any]) -> List[Tuple[str, Any]]:
    """Label/value pairs from the report's overall figures."""
    stats = report.get("overall_stats") or report.get("summary") or {}
    summary = []
    for key, label in (
        ("class_count", "Classes"),
        ("student_count", "Students"),
        ("total_students", "Students"),
        ("assessed_students", "Students Assessed"),
        ("total_assessments", "Total Assessments"),
        ("total_outcomes", "Curriculum Outcomes"),
        ("assessed_outcomes", "Outcomes Assessed"),
    ):
        if key in stats:
            summary.append((label, stats[key]))
    for key, label in (
        ("completion_rate", "Completion"),
        ("average_completion", "Average Completion"),
        ("performance_score", "Performance Score"),
    ):
        if key in stats:
            summary.append((label, _percent(stats[key])))
    distribution = stats.get("rating_distribution")
    if distribution:
        summary.extend([
            ("Easily Meeting (+)", distribution["EASILY_MEETING"]),
            ("Meeting (=)", distribution["MEETING"]),
            ("Needs Practice (x)", distribution["NEEDS_PRACTICE"]),
        ])
    return summary


def _subject_section(report) -> Tuple[str, List[str], List[List[Any]]]:
    headers = ["Subject", "Assessments", "Performance Score", "+", "=", "x"]
    rows = [
        [
            subject["subject_name"],
            subject["total_assessments"],
            _percent(subject["performance_score"]),
        ] + _distribution_cells(subject["rating_distribution"])
        for subject in report.get("subject_summary", [])
    ]
    return "Subject Summary", headers, rows


def report_sections(report_type: str, report: Dict[str, Any]) -> List[Tuple[str, List[str], List[List[Any]]]]:
    """
    Titled tables that follow the detail rows: the overall summary, and
    for class and school summaries the subject breakdown and attention list.

    CSV and PDF render the same sections in the same order.
    """
    sections = []
    summary = report_summary(report_type, report)
    if summary:
        sections.append(("Summary", ["Metric", "Value"], [[label, value] for label, value in summary]))

    if report_type == "class":
        sections.append(_subject_section(report))
        sections.append((
            "Students Needing Attention",
            ["Student", "Assessments", "Needs Practice", "Performance Score"],
            [
                [
                    _name(stats["student"]),
                    stats["total_assessments"],
                    stats["rating_distribution"]["NEEDS_PRACTICE"],
                    _percent(stats["performance_score"]),
                ]
                for stats in report["students_needing_attention"]
            ],
        ))
    elif report_type == "school":
        sections.append(_subject_section(report))
        sections.append((
            "Classes Needing Attention",
            ["Class", "Teacher", "Students", "Performance Score"],
            [
                [
                    stats["class_name"],
                    stats["teacher"],
                    stats["student_count"],
                    _percent(stats["performance_score"]),
                ]
                for stats in report["classes_needing_attention"]
            ],
        ))
    return sections


# ============== Renderers ==============

def render_csv(report_type: str, report: Dict[str, Any]) -> bytes:
    headers, rows = report_rows(report_type, report)
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(headers)
    writer.writerows(rows)
    for title, section_headers, section_rows in report_sections(report_type, report):
        writer.writerow([])
        writer.writerow([title])
        writer.writerow(section_headers)
        writer.writerows(section_rows)
    return buf.getvalue().encode("utf-8")


def _styles():
    ss = getSampleStyleSheet()
    return {
        "title": ParagraphStyle(
            "ReportTitle", parent=ss["Title"], fontSize=18, leading=22, alignment=TA_CENTER,
        ),
        "subtitle": ParagraphStyle(
            "ReportSubtitle", parent=ss["Normal"], fontSize=11, leading=14, alignment=TA_CENTER,
        ),
        "heading": ParagraphStyle(
            "SectionHeading", parent=ss["Heading3"], fontSize=11, spaceBefore=8, spaceAfter=4,
        ),
        "body": ParagraphStyle("Body", parent=ss["Normal"], fontSize=9, leading=12),
        "cell": ParagraphStyle("Cell", parent=ss["Normal"], fontSize=8, leading=10),
    }


def _make_table(data: Sequence[Sequence[Any]], col_widths=None):
    """Create a styled table."""
    style_cmds = [
        ("BACKGROUND", (0, 0), (-1, 0), HEADER_COLOR),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 8),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.HexColor("#cccccc")),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, LIGHT_GREY]),
        ("TOPPADDING", (0, 0), (-1, -1), 3),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 3),
    ]
    t = Table(data, colWidths=col_widths, repeatRows=1)
    t.setStyle(TableStyle(style_cmds))
    return t


def render_pdf(
    report_type: str,
    report: Dict[str, Any],
    options: Optional[Dict[str, Any]] = None,
    page_size: str = "A4",
) -> bytes:
    options = options or {}
    headers, rows = report_rows(report_type, report)
    title, subtitle = report_heading(report_type, report)
    st = _styles()

    pagesize = PAGE_SIZES.get(page_size.upper(), A4)
    if len(headers) > 8:
        pagesize = landscape(pagesize)

    story = [
        Paragraph(escape(options.get("title") or title), st["title"]),
        Paragraph(escape(subtitle), st["subtitle"]),
    ]
    term = report.get("term")
    if term:
        story.append(Paragraph(escape(f"Term: {term['name']} ({term['school_year']})"), st["subtitle"]))
    story.append(Spacer(1, 0.5 * cm))

    if options.get("include_legend", True):
        story.append(Paragraph(
            "<b>Rating Legend:</b> + Easily Meeting | = Meeting | x Needs Practice | - Not Assessed",
            st["body"],
        ))

    available = pagesize[0] - 4 * cm

    def add_table(heading, table_headers, table_rows):
        story.append(Paragraph(escape(heading), st["heading"]))
        col_width = available / max(len(table_headers), 1)
        table_data = [list(table_headers)] + [
            [Paragraph(escape(str(cell)), st["cell"]) for cell in row] for row in table_rows
        ]
        story.append(_make_table(table_data, col_widths=[col_width] * len(table_headers)))

    add_table("Details", headers, rows)
    for section_title, section_headers, section_rows in report_sections(report_type, report):
        add_table(section_title, section_headers, section_rows)

    buf = io.BytesIO()
    doc = SimpleDocTemplate(
        buf,
        pagesize=pagesize,
        leftMargin=2 * cm,
        rightMargin=2 * cm,
        topMargin=2 * cm,
        bottomMargin=2 * cm,
        title=title,
    )
    doc.build(story)
    return buf.getvalue()


def export_filename(report_type: str, fmt: str, timestamp_ms: Optional[int] = None) -> str:
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"{report_type}-report-{timestamp_ms}.{fmt}"


def export_report(
    report_type: str,
    report: Dict[str, Any],
    fmt: str,
    options: Optional[Dict[str, Any]] = None,
    page_size: str = "A4",
) -> Result[ExportFile]:
    """
    Render a finished report.

    Args:
        report_type: One of REPORT_TYPES
        report: The report dict produced by the assembler
        fmt: 'csv' or 'pdf'
        options: PDF options ('title', 'include_legend')
        page_size: PDF page size ('A4' or 'letter')

    Returns:
        Result holding an ExportFile, or a VALIDATION failure for an
        unknown report type or format
    """
    if fmt not in FORMATS:
        return validation_failure('format must be "csv" or "pdf"', "format")
    if report_type not in REPORT_TYPES:
        return validation_failure("Invalid reportType", "report_type")

    if fmt == "csv":
        content = render_csv(report_type, report)
    else:
        content = render_pdf(report_type, report, options, page_size)

    logger.info("Exported %s report as %s (%d bytes)", report_type, fmt, len(content))
    return Result.success(ExportFile(
        content=content,
        content_type=CONTENT_TYPES[fmt],
        filename=export_filename(report_type, fmt),
    ))
