import unittest
from datetime import date

from app.core.booking_errors import BookingNotFoundError, BookingStateError
from app.models import BookingStatus, HybridBooking, Lesson, LessonType
from app.services.hybrid_slot_service import get_available_slots, mark_availability, slot_windows

from booking_fixtures import WEEK_2_DATE, make_sqlite, new_tmpdir, reset_tables, seed_school


class SlotWindowTests(unittest.TestCase):
    def test_windows_tile_lesson_and_drop_trailing_partial(self):
        self.assertEqual(
            slot_windows('09:00', '09:45', 15),
            [('09:00', '09:15'), ('09:15', '09:30'), ('09:30', '09:45')],
        )
        self.assertEqual(slot_windows('09:00', '09:50', 20), [('09:00', '09:20'), ('09:20', '09:40')])
        self.assertEqual(slot_windows('09:00', '09:10', 15), [])

    def test_non_positive_duration_rejected(self):
        with self.assertRaises(ValueError):
            slot_windows('09:00', '10:00', 0)

    def test_overlapping_booking_marks_every_touched_window(self):
        slots = mark_availability(
            slot_windows('09:00', '09:45', 15),
            [('09:10', '09:20')],
            slot_date=date(2025, 1, 13),
            week_number=2,
        )
        self.assertEqual([slot.is_available for slot in slots], [False, False, True])


class AvailableSlotsTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._tmpdir = new_tmpdir()
        cls._engine, cls._session_factory = make_sqlite(cls._tmpdir.name, 'test_hybrid_slots.db')

    @classmethod
    def tearDownClass(cls):
        cls._engine.dispose()
        cls._tmpdir.cleanup()

    def setUp(self):
        self.db = self._session_factory()
        reset_tables(self.db)
        self.world = seed_school(self.db)

    def tearDown(self):
        self.db.close()

    def _book(self, student_id, start, end, status=BookingStatus.CONFIRMED.value):
        self.db.add(
            HybridBooking(
                school_id=self.world.school_id,
                lesson_id=self.world.lesson_id,
                student_id=student_id,
                parent_id=self.world.parent_id,
                week_number=2,
                scheduled_date=WEEK_2_DATE,
                start_time=start,
                end_time=end,
                status=status,
            )
        )
        self.db.commit()

    def test_all_slots_free_for_open_individual_week(self):
        slots = get_available_slots(self.db, self.world.school_id, self.world.lesson_id, 2)
        self.assertEqual([slot.start_time for slot in slots], ['09:00', '09:15', '09:30'])
        self.assertTrue(all(slot.is_available for slot in slots))
        self.assertTrue(all(slot.date == WEEK_2_DATE for slot in slots))
        self.assertEqual(slots[0].to_dict()['date'], '2025-01-13')

    def test_confirmed_booking_blocks_slot_and_cancelled_does_not(self):
        self._book(self.world.student_ids[0], '09:15', '09:30')
        self._book(self.world.student_ids[1], '09:30', '09:45', status=BookingStatus.CANCELLED.value)

        slots = get_available_slots(self.db, self.world.school_id, self.world.lesson_id, 2)
        self.assertEqual([slot.is_available for slot in slots], [True, False, True])

    def test_group_week_is_not_bookable(self):
        with self.assertRaises(BookingStateError) as ctx:
            get_available_slots(self.db, self.world.school_id, self.world.lesson_id, 3)
        self.assertEqual(str(ctx.exception), 'Week 3 is not an individual booking week.')

    def test_closed_bookings_rejected(self):
        pattern = self.db.get(Lesson, self.world.lesson_id).hybrid_pattern
        pattern.bookings_open = False
        self.db.commit()
        with self.assertRaises(BookingStateError) as ctx:
            get_available_slots(self.db, self.world.school_id, self.world.lesson_id, 2)
        self.assertEqual(str(ctx.exception), 'Bookings are not currently open for this lesson.')

    def test_non_hybrid_lesson_rejected(self):
        lesson = self.db.get(Lesson, self.world.lesson_id)
        lesson.lesson_type = LessonType.GROUP.value
        self.db.commit()
        with self.assertRaises(BookingStateError):
            get_available_slots(self.db, self.world.school_id, self.world.lesson_id, 2)

    def test_lesson_in_other_school_is_not_found(self):
        other = seed_school(self.db, slug='hillside')
        with self.assertRaises(BookingNotFoundError):
            get_available_slots(self.db, other.school_id, self.world.lesson_id, 2)


if __name__ == '__main__':
    unittest.main()
