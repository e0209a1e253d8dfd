from pathlib import Path
import logging
import sys
import time


ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from app.config import settings
from app.domain.jobs import booking_notifications


logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s %(levelname)s %(name)s %(message)s',
)
logger = logging.getLogger('notification_worker')


def main() -> None:
    interval = max(1, int(settings.notification_poll_seconds))
    logger.info('notification_worker_started interval_seconds=%s', interval)
    while True:
        try:
            booking_notifications.execute()
        except Exception:
            logger.exception('notification_worker_cycle_failed')
        time.sleep(interval)


if __name__ == '__main__':
    try:
        main()
    except KeyboardInterrupt:
        logger.info('notification_worker_stopped')
