"""
Seed data script for the Kindergarten Assessment system.
Creates sample data for testing and demonstration.
"""
from datetime import date, datetime, timedelta
import logging
import random
from database import (
    get_db_context, init_db,
    Country, School, User, UserAssignment, SchoolClass, Student, StudentGuardian,
    Subject, Strand, LearningOutcome, AcademicTerm, Assessment, Rating, UserRole,
)

logger = logging.getLogger(__name__)

COUNTRIES = [
    ("Saint Lucia", "LCA"),
    ("Grenada", "GRD"),
    ("Dominica", "DMA"),
]

# subject -> strand -> [(code, description)]
CURRICULUM = {
    "Language and Literacy": {
        "Listening and Speaking": [
            ("LL-LS-1", "Listens attentively to stories and follows simple instructions"),
            ("LL-LS-2", "Speaks clearly to express ideas and needs"),
        ],
        "Reading": [
            ("LL-R-1", "Recognises letters of the alphabet"),
            ("LL-R-2", "Identifies beginning sounds in familiar words"),
        ],
    },
    "Mathematics": {
        "Number Sense": [
            ("MA-NS-1", "Counts objects up to 20"),
            ("MA-NS-2", "Recognises numerals 0 to 10"),
        ],
        "Patterns and Shapes": [
            ("MA-PS-1", "Identifies basic two-dimensional shapes"),
            ("MA-PS-2", "Copies and extends simple patterns"),
        ],
    },
    "Personal and Social Development": {
        "Self-Care": [
            ("PS-SC-1", "Manages personal hygiene routines independently"),
        ],
    },
}

STUDENTS = [
    ("Anya", "Baptiste", "ST001"),
    ("Marcus", "Charles", "ST002"),
    ("Sophia", "Joseph", "ST003"),
    ("Elijah", "Williams", "ST004"),
    ("Amara", "Edwards", "ST005"),
    ("Jayden", "Louis", "ST006"),
    ("Isabella", "Pierre", "ST007"),
    ("Noah", "Anthony", "ST008"),
]


def seed_database():
    """Populate database with sample data."""

    with get_db_context() as db:
        # Clear existing data
        db.query(Assessment).delete()
        db.query(StudentGuardian).delete()
        db.query(Student).delete()
        db.query(SchoolClass).delete()
        db.query(AcademicTerm).delete()
        db.query(UserAssignment).delete()
        db.query(User).delete()
        db.query(LearningOutcome).delete()
        db.query(Strand).delete()
        db.query(Subject).delete()
        db.query(School).delete()
        db.query(Country).delete()

        # Countries and schools
        countries = [Country(name=name, code=code) for name, code in COUNTRIES]
        db.add_all(countries)
        db.flush()

        schools = [
            School(name="Castries Primary School", country_id=countries[0].id),
            School(name="Vieux Fort Primary School", country_id=countries[0].id),
        ]
        db.add_all(schools)
        db.flush()

        # Users
        superuser = User(first_name="System", last_name="Admin", email="admin@example.org",
                         role=UserRole.SUPERUSER.value)
        country_admin = User(first_name="Clara", last_name="Henry", email="country@example.org",
                             role=UserRole.COUNTRY_ADMIN.value)
        school_admin = User(first_name="Desmond", last_name="Felix", email="principal@example.org",
                            role=UserRole.SCHOOL_ADMIN.value)
        teachers = [
            User(first_name="Grace", last_name="Alexander", email="teacher@example.org",
                 role=UserRole.TEACHER.value),
            User(first_name="Peter", last_name="Mathurin", email="teacher2@example.org",
                 role=UserRole.TEACHER.value),
        ]
        parent = User(first_name="Joan", last_name="Baptiste", email="parent@example.org",
                      role=UserRole.PARENT_STUDENT.value)
        db.add_all([superuser, country_admin, school_admin, *teachers, parent])
        db.flush()

        db.add_all([
            UserAssignment(user_id=country_admin.id, country_id=countries[0].id),
            UserAssignment(user_id=school_admin.id, school_id=schools[0].id),
            UserAssignment(user_id=teachers[0].id, school_id=schools[0].id),
            UserAssignment(user_id=teachers[1].id, school_id=schools[0].id),
            UserAssignment(user_id=parent.id, school_id=schools[0].id),
        ])

        # Terms
        terms = [
            AcademicTerm(name="Term 1", school_year="2024-2025", school_id=schools[0].id,
                         start_date=datetime(2024, 9, 1), end_date=datetime(2024, 12, 20)),
            AcademicTerm(name="Term 2", school_year="2024-2025", school_id=schools[0].id,
                         start_date=datetime(2025, 1, 6), end_date=datetime(2025, 4, 4)),
        ]
        db.add_all(terms)

        # Classes
        classes = [
            SchoolClass(name="K-A", grade_level="K", academic_year="2024-2025",
                        school_id=schools[0].id, teacher_id=teachers[0].id),
            SchoolClass(name="K-B", grade_level="K", academic_year="2024-2025",
                        school_id=schools[0].id, teacher_id=teachers[1].id),
        ]
        db.add_all(classes)
        db.flush()

        # Students: first half in K-A, rest in K-B
        students = []
        for i, (first_name, last_name, number) in enumerate(STUDENTS):
            students.append(Student(
                first_name=first_name,
                last_name=last_name,
                student_id_number=number,
                school_id=schools[0].id,
                class_id=classes[0].id if i < len(STUDENTS) // 2 else classes[1].id,
            ))
        db.add_all(students)
        db.flush()

        db.add(StudentGuardian(user_id=parent.id, student_id=students[0].id))

        # Curriculum
        outcomes = []
        for s_order, (subject_name, strands) in enumerate(CURRICULUM.items(), start=1):
            subject = Subject(name=subject_name, display_order=s_order)
            db.add(subject)
            db.flush()
            for st_order, (strand_name, items) in enumerate(strands.items(), start=1):
                strand = Strand(name=strand_name, display_order=st_order, subject_id=subject.id)
                db.add(strand)
                db.flush()
                for o_order, (code, description) in enumerate(items, start=1):
                    outcome = LearningOutcome(
                        code=code, description=description,
                        display_order=o_order, strand_id=strand.id,
                    )
                    db.add(outcome)
                    outcomes.append(outcome)
        db.flush()

        # Sample assessments: a couple of observations per student/outcome
        ratings = [r.value for r in Rating]
        comments = [None, "Good progress", "Needs support at home", "Very confident"]
        rng = random.Random(42)
        start = date(2024, 9, 16)

        for student in students:
            teacher_id = teachers[0].id if student.class_id == classes[0].id else teachers[1].id
            for outcome in outcomes:
                for _ in range(rng.randint(0, 2)):
                    db.add(Assessment(
                        student_id=student.id,
                        learning_outcome_id=outcome.id,
                        term_id=terms[0].id,
                        assessed_by=teacher_id,
                        created_by=teacher_id,
                        assessment_date=start + timedelta(days=rng.randint(0, 90)),
                        rating=rng.choice(ratings),
                        comment=rng.choice(comments),
                    ))

        db.commit()

        logger.info(
            "Seeded %d schools, %d classes, %d students, %d outcomes",
            len(schools), len(classes), len(students), len(outcomes),
        )


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    init_db()
    seed_database()
