import multiprocessing
import os

wsgi_app = "app.main:app"
bind = os.getenv("SCHEDULING_BIND", "127.0.0.1:8000")
# Bookings are short, DB-bound requests; the notification worker runs as its own process.
workers = int(os.getenv("SCHEDULING_WORKERS", (multiprocessing.cpu_count() * 2) + 1))
worker_class = "uvicorn.workers.UvicornWorker"
timeout = 60
graceful_timeout = 30
keepalive = 5
loglevel = os.getenv("SCHEDULING_LOG_LEVEL", "info")
accesslog = "-"
errorlog = "-"
