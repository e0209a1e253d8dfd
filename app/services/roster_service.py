from __future__ import annotations

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models import Enrollment, Parent, Student
from app.services.school_scope_service import SchoolScope


def is_enrolled(db: Session, school_id: int, lesson_id: int, student_id: int) -> bool:
    scope = SchoolScope(db, school_id)
    row = (
        scope.query(Enrollment)
        .filter(
            Enrollment.lesson_id == int(lesson_id),
            Enrollment.student_id == int(student_id),
            Enrollment.is_active.is_(True),
        )
        .first()
    )
    return row is not None


def family_student_ids(db: Session, school_id: int, parent_id: int) -> set[int]:
    scope = SchoolScope(db, school_id)
    parent = scope.get(Parent, parent_id)
    if not parent or not parent.family_id:
        return set()
    rows = (
        scope.query(Student)
        .with_entities(Student.id)
        .filter(Student.family_id == parent.family_id)
        .all()
    )
    return {int(row.id) for row in rows}


def parent_can_act_for_student(db: Session, school_id: int, parent_id: int, student_id: int) -> bool:
    return int(student_id) in family_student_ids(db, school_id, parent_id)


def active_enrollment_counts(db: Session, school_id: int, lesson_ids: list[int]) -> dict[int, int]:
    if not lesson_ids:
        return {}
    scope = SchoolScope(db, school_id)
    rows = (
        scope.query(Enrollment)
        .with_entities(Enrollment.lesson_id, func.count(func.distinct(Enrollment.student_id)))
        .filter(
            Enrollment.lesson_id.in_(lesson_ids),
            Enrollment.is_active.is_(True),
        )
        .group_by(Enrollment.lesson_id)
        .all()
    )
    return {int(lesson_id): int(count) for lesson_id, count in rows}


def active_enrolled_student_ids(db: Session, school_id: int, lesson_id: int) -> list[int]:
    scope = SchoolScope(db, school_id)
    rows = (
        scope.query(Enrollment)
        .with_entities(Enrollment.student_id)
        .filter(
            Enrollment.lesson_id == int(lesson_id),
            Enrollment.is_active.is_(True),
        )
        .order_by(Enrollment.student_id.asc())
        .all()
    )
    return [int(row.student_id) for row in rows]


def family_enrolled_lesson_ids(db: Session, school_id: int, parent_id: int) -> set[int]:
    student_ids = family_student_ids(db, school_id, parent_id)
    if not student_ids:
        return set()
    scope = SchoolScope(db, school_id)
    rows = (
        scope.query(Enrollment)
        .with_entities(Enrollment.lesson_id)
        .filter(
            Enrollment.student_id.in_(sorted(student_ids)),
            Enrollment.is_active.is_(True),
        )
        .all()
    )
    return {int(row.lesson_id) for row in rows}
