from __future__ import annotations

from contextvars import ContextVar

from fastapi.routing import APIRoute
from starlette.requests import Request


# Read by the slow-query listener in app.db; jobs and scripts report as 'background'.
current_endpoint: ContextVar[str] = ContextVar('current_endpoint', default='background')


def endpoint_label(method: str, path_template: str) -> str:
    return f'{method.upper()} {path_template}'


class EndpointNameRoute(APIRoute):
    """Tags every query issued while serving a request with the route template."""

    def get_route_handler(self):
        original_handler = super().get_route_handler()

        async def custom_handler(request: Request):
            token = current_endpoint.set(endpoint_label(request.method, self.path))
            try:
                return await original_handler(request)
            finally:
                current_endpoint.reset(token)

        return custom_handler
