import unittest

from app.models import HybridBooking, School, Student
from app.services.school_scope_service import SchoolScope, get_current_school_id, school_context

from booking_fixtures import make_sqlite, new_tmpdir, reset_tables, seed_school


class SchoolScopeTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._tmpdir = new_tmpdir()
        cls._engine, cls._session_factory = make_sqlite(cls._tmpdir.name, 'test_school_scope.db')

    @classmethod
    def tearDownClass(cls):
        cls._engine.dispose()
        cls._tmpdir.cleanup()

    def setUp(self):
        self.db = self._session_factory()
        reset_tables(self.db)
        self.alpha = seed_school(self.db, slug='alpha')
        self.beta = seed_school(self.db, slug='beta')

    def tearDown(self):
        self.db.close()

    def test_scope_only_returns_rows_of_its_school(self):
        alpha_ids = {row.id for row in SchoolScope(self.db, self.alpha.school_id).query(Student).all()}
        self.assertEqual(alpha_ids, {*self.alpha.student_ids, self.alpha.other_student_id})
        self.assertIsNone(SchoolScope(self.db, self.beta.school_id).get(Student, self.alpha.student_ids[0]))
        self.assertIsNone(SchoolScope(self.db, self.beta.school_id).get(Student, None))

    def test_scope_refuses_unscoped_models_and_missing_school(self):
        with self.assertRaises(TypeError):
            SchoolScope(self.db, self.alpha.school_id).query(School)
        with self.assertRaises(ValueError):
            SchoolScope(self.db, 0)

    def test_add_stamps_school_and_rejects_foreign_rows(self):
        scope = SchoolScope(self.db, self.alpha.school_id)
        row = scope.add(Student(first_name='New'))
        self.assertEqual(row.school_id, self.alpha.school_id)
        self.db.rollback()

        with self.assertRaises(ValueError):
            scope.add(Student(first_name='Stray', school_id=self.beta.school_id))

    def test_school_context_filters_plain_queries(self):
        self.assertIsNone(get_current_school_id())
        self.assertEqual(self.db.query(Student).count(), 6)

        with school_context(self.beta.school_id):
            self.assertEqual(get_current_school_id(), self.beta.school_id)
            school_ids = {row.school_id for row in self.db.query(Student).all()}
            self.assertEqual(school_ids, {self.beta.school_id})
            self.assertEqual(self.db.query(HybridBooking).all(), [])

        self.assertIsNone(get_current_school_id())


if __name__ == '__main__':
    unittest.main()
