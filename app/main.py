from contextlib import asynccontextmanager
import logging
import time

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.config import settings
from app.core.booking_errors import BookingError
from app.db import Base, engine
from app.routers import calendar, hybrid_bookings
from app.route_logging import EndpointNameRoute
from app.tenant_middleware import TenantResolutionMiddleware

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s %(levelname)s %(name)s %(message)s',
)


@asynccontextmanager
async def lifespan(_: FastAPI):
    Base.metadata.create_all(bind=engine)
    yield


async def booking_error_handler(request: Request, exc: BookingError):
    logging.getLogger('app.request').info(
        'booking_error path=%s code=%s status_code=%s detail=%s',
        request.url.path,
        exc.code,
        exc.status_code,
        exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content={'detail': exc.message, 'code': exc.code})


async def slow_request_logger(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - started) * 1000.0
    if duration_ms >= settings.metrics_slow_ms:
        logging.getLogger('app.request').info(
            'request_slow path=%s method=%s status_code=%s duration_ms=%.2f',
            request.url.path,
            request.method,
            response.status_code,
            duration_ms,
        )
    return response


def create_app(*, session_factory=None) -> FastAPI:
    application = FastAPI(title=settings.app_name, version='0.1.0', lifespan=lifespan)
    application.router.route_class = EndpointNameRoute
    application.add_middleware(TenantResolutionMiddleware, session_factory=session_factory)
    application.middleware('http')(slow_request_logger)
    application.add_exception_handler(BookingError, booking_error_handler)

    application.include_router(hybrid_bookings.router)
    application.include_router(calendar.router)

    @application.get('/')
    def health():
        return {'app': settings.app_name, 'status': 'ok'}

    @application.get('/health')
    def healthcheck():
        return {'status': 'ok'}

    return application


app = create_app()
