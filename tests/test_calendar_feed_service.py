import unittest
from datetime import date

from app.models import BookingStatus, HybridBooking, Lesson, LessonType
from app.services.calendar_feed_service import (
    BookingSnapshot,
    LessonSnapshot,
    build_calendar_events,
    get_calendar_events,
    get_parent_calendar_events,
    paginate_events,
    resolve_date_range,
)

from booking_fixtures import (
    TERM_END,
    TERM_START,
    WEEK_2_DATE,
    local_time,
    make_sqlite,
    new_tmpdir,
    reset_tables,
    seed_school,
)


def _hybrid_lesson(**overrides) -> LessonSnapshot:
    values = dict(
        id=1,
        name='Guitar Hybrid',
        lesson_type=LessonType.HYBRID.value,
        weekday=0,
        start_time='09:00',
        end_time='09:45',
        term_start=TERM_START,
        term_end=TERM_END,
        teacher_name='Jo March',
        enrolled_count=3,
        max_participants=6,
        has_pattern=True,
        group_weeks=frozenset({1, 3}),
        individual_weeks=frozenset({2, 4}),
        bookings_open=True,
    )
    values.update(overrides)
    return LessonSnapshot(**values)


def _booking(**overrides) -> BookingSnapshot:
    values = dict(
        id=7,
        lesson_id=1,
        lesson_name='Guitar Hybrid',
        week_number=2,
        scheduled_date=WEEK_2_DATE,
        start_time='09:00',
        end_time='09:15',
        student_id=11,
        student_name='Ava Lee',
    )
    values.update(overrides)
    return BookingSnapshot(**values)


class CalendarBuildTests(unittest.TestCase):
    def test_hybrid_weeks_become_group_placeholder_and_booking_events(self):
        events = build_calendar_events([_hybrid_lesson()], [_booking()], date(2025, 1, 6), date(2025, 1, 31))

        self.assertEqual(
            [(row.id, row.kind) for row in events],
            [
                ('1-week-1', 'hybrid_group'),
                ('1-week-2-placeholder', 'hybrid_placeholder'),
                ('booking-7', 'hybrid_individual'),
                ('1-week-3', 'hybrid_group'),
                ('1-week-4-placeholder', 'hybrid_placeholder'),
            ],
        )
        self.assertEqual(events[0].title, 'Guitar Hybrid (Group)')
        self.assertEqual(events[1].title, 'Guitar Hybrid (Individual Booking Week)')
        self.assertTrue(events[1].bookings_open)
        self.assertEqual(events[2].title, 'Guitar Hybrid - Ava Lee')
        self.assertEqual(events[2].booking_id, 7)

    def test_unassigned_hybrid_weeks_produce_nothing(self):
        events = build_calendar_events([_hybrid_lesson()], [], date(2025, 2, 3), date(2025, 2, 28))
        self.assertEqual(events, [])

    def test_plain_lesson_repeats_weekly_until_term_end(self):
        lesson = _hybrid_lesson(
            lesson_type=LessonType.GROUP.value,
            has_pattern=False,
            group_weeks=frozenset(),
            individual_weeks=frozenset(),
            term_end=date(2025, 1, 19),
        )
        events = build_calendar_events([lesson], [], date(2025, 1, 1), date(2025, 12, 31))
        self.assertEqual([row.id for row in events], ['1-week-1', '1-week-2'])
        self.assertEqual({row.kind for row in events}, {'group'})
        self.assertEqual(events[0].title, 'Guitar Hybrid')

    def test_range_trims_occurrences(self):
        events = build_calendar_events([_hybrid_lesson()], [], date(2025, 1, 14), date(2025, 1, 20))
        self.assertEqual([row.id for row in events], ['1-week-3'])
        self.assertEqual(events[0].to_dict()['start'], '2025-01-20T09:00:00')

    def test_pagination_reports_totals(self):
        events = build_calendar_events([_hybrid_lesson()], [_booking()], date(2025, 1, 6), date(2025, 1, 31))

        last_page = paginate_events(events, 3, 2)
        self.assertEqual([row['id'] for row in last_page['events']], ['1-week-4-placeholder'])
        self.assertEqual(
            last_page['pagination'],
            {'page': 3, 'limit': 2, 'total': 5, 'total_pages': 3, 'has_more': False},
        )
        self.assertTrue(paginate_events(events, 1, 2)['pagination']['has_more'])
        self.assertEqual(paginate_events(events, 9, 2)['events'], [])

    def test_date_range_defaults_and_validation(self):
        start, end = resolve_date_range(None, None, time_provider=local_time(2025, 1, 10, 8, 0))
        self.assertEqual(start, date(2025, 1, 10))
        self.assertEqual(end, date(2025, 4, 10))
        with self.assertRaises(ValueError):
            resolve_date_range(date(2025, 2, 1), date(2025, 1, 1))


class CalendarFeedDbTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._tmpdir = new_tmpdir()
        cls._engine, cls._session_factory = make_sqlite(cls._tmpdir.name, 'test_calendar_feed.db')

    @classmethod
    def tearDownClass(cls):
        cls._engine.dispose()
        cls._tmpdir.cleanup()

    def setUp(self):
        self.db = self._session_factory()
        reset_tables(self.db)
        self.world = seed_school(self.db)
        for student_id, parent_id, start, end, status in (
            (self.world.student_ids[0], self.world.parent_id, '09:00', '09:15', BookingStatus.CONFIRMED.value),
            (self.world.other_student_id, self.world.other_parent_id, '09:15', '09:30', BookingStatus.CONFIRMED.value),
            (self.world.student_ids[1], self.world.parent_id, '09:30', '09:45', BookingStatus.CANCELLED.value),
        ):
            self.db.add(
                HybridBooking(
                    school_id=self.world.school_id,
                    lesson_id=self.world.lesson_id,
                    student_id=student_id,
                    parent_id=parent_id,
                    week_number=2,
                    scheduled_date=WEEK_2_DATE,
                    start_time=start,
                    end_time=end,
                    status=status,
                )
            )
        self.db.commit()

    def tearDown(self):
        self.db.close()

    def test_school_feed_merges_occurrences_and_active_bookings(self):
        result = get_calendar_events(
            self.db,
            self.world.school_id,
            term_id=self.world.term_id,
            start_date=date(2025, 1, 6),
            end_date=date(2025, 1, 31),
            limit=50,
        )
        kinds = [row['kind'] for row in result['events']]
        self.assertEqual(kinds.count('hybrid_individual'), 2)
        self.assertEqual(kinds.count('hybrid_group'), 2)
        self.assertEqual(kinds.count('hybrid_placeholder'), 2)
        self.assertEqual(result['pagination']['total'], 6)

        placeholder = next(row for row in result['events'] if row['kind'] == 'hybrid_placeholder')
        self.assertEqual(placeholder['teacher_name'], 'Jo March')
        self.assertEqual(placeholder['room_name'], 'Studio 1')
        self.assertEqual(placeholder['location_name'], 'North Campus')
        self.assertEqual(placeholder['enrolled_count'], 3)

    def test_default_window_starts_today(self):
        result = get_calendar_events(self.db, self.world.school_id, time_provider=local_time(2025, 1, 10, 9, 0))
        self.assertEqual(
            [row['kind'] for row in result['events']],
            ['hybrid_placeholder', 'hybrid_individual', 'hybrid_individual', 'hybrid_group', 'hybrid_placeholder'],
        )
        self.assertEqual(result['events'][0]['id'], f'{self.world.lesson_id}-week-2-placeholder')
        self.assertEqual(result['pagination']['limit'], 100)

    def test_teacher_filter_excludes_other_teachers_lessons_and_bookings(self):
        result = get_calendar_events(
            self.db,
            self.world.school_id,
            teacher_id=self.world.teacher_id + 100,
            start_date=date(2025, 1, 6),
            end_date=date(2025, 1, 31),
        )
        self.assertEqual(result['events'], [])
        self.assertEqual(result['pagination']['total'], 0)

    def test_inactive_lessons_are_hidden(self):
        lesson = self.db.get(Lesson, self.world.lesson_id)
        lesson.is_active = False
        self.db.commit()
        result = get_calendar_events(
            self.db,
            self.world.school_id,
            start_date=date(2025, 1, 6),
            end_date=date(2025, 1, 31),
        )
        self.assertEqual([row['kind'] for row in result['events']], ['hybrid_individual', 'hybrid_individual'])

    def test_other_school_sees_nothing(self):
        other = seed_school(self.db, slug='hillside')
        result = get_calendar_events(
            self.db,
            other.school_id,
            term_id=self.world.term_id,
            start_date=date(2025, 1, 6),
            end_date=date(2025, 1, 31),
        )
        self.assertEqual(result['events'], [])

    def test_parent_feed_shows_only_family_bookings(self):
        rows = get_parent_calendar_events(
            self.db,
            self.world.school_id,
            self.world.parent_id,
            start_date=date(2025, 1, 6),
            end_date=date(2025, 1, 31),
        )
        bookings = [row for row in rows if row['kind'] == 'hybrid_individual']
        self.assertEqual([row['student_id'] for row in bookings], [self.world.student_ids[0]])
        self.assertEqual(len(rows), 5)

    def test_parent_without_enrolled_children_gets_empty_feed(self):
        rows = get_parent_calendar_events(self.db, self.world.school_id, 99999, start_date=date(2025, 1, 6))
        self.assertEqual(rows, [])


if __name__ == '__main__':
    unittest.main()
