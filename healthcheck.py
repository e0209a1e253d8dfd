import sys

import httpx
from alembic.config import Config
from alembic.script import ScriptDirectory
from alembic.runtime.migration import MigrationContext
from sqlalchemy import func, text

from app.config import settings
from app.db import SessionLocal, engine
from app.models import HybridBooking, NotificationOutbox, School


GREEN = '\033[32m'
RED = '\033[31m'
RESET = '\033[0m'


def run_check(name, fn):
    try:
        message = fn() or ''
        suffix = f' - {message}' if message else ''
        print(f'{GREEN}PASS{RESET} {name}{suffix}')
        return True
    except Exception as exc:
        print(f'{RED}FAIL{RESET} {name} - {exc}')
        return False


def check_db_connectivity_and_write():
    with engine.begin() as conn:
        conn.execute(text('SELECT 1'))
        conn.execute(text('CREATE TABLE IF NOT EXISTS _healthcheck_probe (id INTEGER PRIMARY KEY, note TEXT)'))
        conn.execute(text("INSERT INTO _healthcheck_probe (note) VALUES ('probe')"))
        conn.execute(text("DELETE FROM _healthcheck_probe WHERE note='probe'"))
        conn.execute(text('DROP TABLE IF EXISTS _healthcheck_probe'))
    return 'connect + write ok'


def check_alembic_head():
    cfg = Config()
    cfg.set_main_option('script_location', 'alembic')
    script = ScriptDirectory.from_config(cfg)
    heads = set(script.get_heads())
    if not heads:
        raise RuntimeError('No alembic heads found in repository')

    with engine.connect() as conn:
        current = MigrationContext.configure(conn).get_current_revision()

    if current is None:
        raise RuntimeError('No migration version in DB (run alembic upgrade head)')
    if current not in heads:
        raise RuntimeError(f'DB revision {current} is not at head {sorted(heads)}')
    return f'current={current}'


def check_required_env():
    required = {
        'DATABASE_URL': settings.database_url,
        'APP_TIMEZONE': settings.app_timezone,
        'DEV_DEFAULT_SCHOOL_SLUG': settings.dev_default_school_slug,
    }
    missing = [key for key, value in required.items() if not str(value).strip()]
    if missing:
        raise RuntimeError(f'Missing env vars: {", ".join(missing)}')
    return 'all required vars present'


def check_schools_present():
    db = SessionLocal()
    try:
        count = db.query(func.count(School.id)).scalar() or 0
        if count <= 0:
            raise RuntimeError('No schools configured (run scripts/init_db.py)')
        return f'schools={count}'
    finally:
        db.close()


def check_booking_table_accessible():
    db = SessionLocal()
    try:
        _ = db.query(HybridBooking).limit(1).all()
        return 'query ok'
    finally:
        db.close()


def check_notification_backlog():
    db = SessionLocal()
    try:
        queued = db.query(func.count(NotificationOutbox.id)).filter(NotificationOutbox.status == 'queued').scalar() or 0
        failed = db.query(func.count(NotificationOutbox.id)).filter(NotificationOutbox.status == 'failed').scalar() or 0
        if queued > settings.notification_batch_size * 10:
            raise RuntimeError(f'Outbox backlog too large queued={queued} (is the notification worker running?)')
        return f'queued={queued} failed={failed}'
    finally:
        db.close()


def check_communication_service():
    base_url = (settings.communication_service_url or '').strip().rstrip('/')
    if not base_url:
        return 'disabled (logging client in use)'
    res = httpx.get(f'{base_url}/health', timeout=8)
    if res.status_code != 200:
        raise RuntimeError(f'HTTP {res.status_code} from communication service')
    return 'communication service reachable'


def main():
    checks = [
        ('Database connectivity and write access', check_db_connectivity_and_write),
        ('Alembic migration status at head', check_alembic_head),
        ('Required environment variables present', check_required_env),
        ('At least one school configured', check_schools_present),
        ('HybridBooking table accessible', check_booking_table_accessible),
        ('Notification outbox backlog', check_notification_backlog),
        ('Communication service reachable', check_communication_service),
    ]

    all_ok = True
    for name, fn in checks:
        all_ok = run_check(name, fn) and all_ok

    sys.exit(0 if all_ok else 1)


if __name__ == '__main__':
    main()
