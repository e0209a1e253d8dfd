from datetime import timedelta
from pathlib import Path
import sys


# Ensure imports work when running this file directly: `python scripts/init_db.py`.
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from app.config import settings
from app.core.time_provider import default_time_provider
from app.db import Base, SessionLocal, engine
from app.models import (
    Enrollment,
    Family,
    HybridPattern,
    Lesson,
    LessonType,
    Parent,
    Room,
    School,
    Student,
    Teacher,
    Term,
)
from app.services.school_scope_service import SchoolScope, school_context


Base.metadata.create_all(bind=engine)

db = SessionLocal()
try:
    school = db.query(School).filter(School.slug == settings.dev_default_school_slug).first()
    if not school:
        school = School(name='Default School', slug=settings.dev_default_school_slug, timezone=settings.app_timezone)
        db.add(school)
        db.commit()
        db.refresh(school)

    with school_context(school.id):
        scope = SchoolScope(db, school.id)
        if not scope.query(Lesson).first():
            today = default_time_provider.today()
            term_start = today - timedelta(days=today.weekday())
            term = scope.add(Term(name='Term 1', start_date=term_start, end_date=term_start + timedelta(weeks=10, days=-1)))
            teacher = scope.add(Teacher(first_name='Alex', last_name='Rivera'))
            room = scope.add(Room(name='Studio A', location_name='Main Campus'))
            db.flush()

            lesson = scope.add(
                Lesson(
                    term_id=term.id,
                    teacher_id=teacher.id,
                    room_id=room.id,
                    name='Piano Foundations',
                    instrument='Piano',
                    lesson_type=LessonType.HYBRID.value,
                    weekday=0,
                    start_time='16:00',
                    end_time='17:00',
                    max_participants=4,
                )
            )
            db.flush()
            scope.add(
                HybridPattern(
                    lesson_id=lesson.id,
                    group_weeks=[1, 3, 5, 7, 9],
                    individual_weeks=[2, 4, 6, 8, 10],
                    individual_slot_duration=15,
                    bookings_open=True,
                )
            )

            family = scope.add(Family(name='Nguyen'))
            db.flush()
            scope.add(Parent(family_id=family.id, first_name='Sam', last_name='Nguyen', email='sam@example.com'))
            students = [
                scope.add(Student(family_id=family.id, first_name='Mia', last_name='Nguyen')),
                scope.add(Student(family_id=family.id, first_name='Leo', last_name='Nguyen')),
            ]
            db.flush()
            for student in students:
                scope.add(Enrollment(lesson_id=lesson.id, student_id=student.id))
            db.commit()
finally:
    db.close()

print('DB initialized with sample data.')
