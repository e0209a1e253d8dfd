import tempfile
import unittest
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.config import settings
from app.db import Base
from app.models import School
from app.services.school_scope_service import get_current_school_id
from app.tenant_middleware import TenantResolutionMiddleware, get_request_school_id


class TenantMiddlewareTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._tmpdir = tempfile.TemporaryDirectory()
        db_path = Path(cls._tmpdir.name) / 'test_tenant_middleware.db'
        cls._engine = create_engine(f"sqlite:///{db_path}", connect_args={'check_same_thread': False})
        cls._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=cls._engine)
        Base.metadata.create_all(bind=cls._engine)

        app = FastAPI()
        app.add_middleware(TenantResolutionMiddleware, session_factory=cls._session_factory)

        @app.get('/private')
        def private_route(request: Request):
            return {
                'ok': True,
                'school_id': get_request_school_id(request),
                'context_school_id': get_current_school_id(),
                'slug': request.state.school_slug,
            }

        cls.client = TestClient(app)

    @classmethod
    def tearDownClass(cls):
        cls.client.close()
        cls._engine.dispose()
        cls._tmpdir.cleanup()

    def setUp(self):
        db = self._session_factory()
        try:
            db.query(School).delete()
            db.commit()

            default_school = School(name='Default', slug=settings.dev_default_school_slug)
            alpha = School(name='Alpha', slug='alpha')
            beta = School(name='Beta', slug='beta')
            db.add_all([default_school, alpha, beta])
            db.commit()
            self.default_school_id = int(default_school.id)
            self.alpha_id = int(alpha.id)
            self.beta_id = int(beta.id)
        finally:
            db.close()

    def test_subdomain_resolves_school_and_binds_context(self):
        response = self.client.get('/private', headers={'host': 'alpha.localhost:8000'})
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body['school_id'], self.alpha_id)
        self.assertEqual(body['context_school_id'], self.alpha_id)
        self.assertEqual(body['slug'], 'alpha')

    def test_header_disagreeing_with_subdomain_blocked(self):
        response = self.client.get(
            '/private',
            headers={'host': 'beta.localhost:8000', 'x-school-id': str(self.alpha_id)},
        )
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json().get('detail'), 'School mismatch')

    def test_unknown_subdomain_is_not_found(self):
        response = self.client.get('/private', headers={'host': 'nowhere.localhost:8000'})
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json().get('detail'), 'School not found')

    def test_header_selects_school_without_subdomain(self):
        response = self.client.get('/private', headers={'x-school-id': str(self.beta_id)})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['school_id'], self.beta_id)

        missing = self.client.get('/private', headers={'x-school-id': '99999'})
        self.assertEqual(missing.status_code, 404)

    def test_malformed_header_rejected(self):
        for value in ('abc', '-3', '0'):
            response = self.client.get('/private', headers={'x-school-id': value})
            self.assertEqual(response.status_code, 400, value)
            self.assertEqual(response.json().get('detail'), 'Invalid school header')

    def test_localhost_uses_default_school(self):
        response = self.client.get('/private', headers={'host': 'localhost:8000'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['school_id'], self.default_school_id)

    def test_loopback_ip_uses_default_school(self):
        response = self.client.get('/private', headers={'host': '127.0.0.1:8000'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['school_id'], self.default_school_id)

    def test_default_school_auto_created_when_missing(self):
        db = self._session_factory()
        try:
            db.query(School).filter(School.slug == settings.dev_default_school_slug).delete()
            db.commit()
        finally:
            db.close()

        response = self.client.get('/private', headers={'host': 'localhost:8000'})
        self.assertEqual(response.status_code, 200)

        db = self._session_factory()
        try:
            recreated = db.query(School).filter(School.slug == settings.dev_default_school_slug).first()
            self.assertIsNotNone(recreated)
            self.assertEqual(response.json()['school_id'], int(recreated.id))
        finally:
            db.close()


if __name__ == '__main__':
    unittest.main()
