"""Request-scoped middleware for API requests."""

from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from utils.user_context import clear_current_actor_id, set_current_actor_id

ACTOR_HEADER = "X-User-Id"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Assigns a unique request ID to every request."""

    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class ActorMiddleware(BaseHTTPMiddleware):
    """
    Puts the caller identified by the upstream auth layer into context.

    The auth collaborator sets X-User-Id after it has validated the
    session. Requests without it run as the system actor.
    """

    async def dispatch(self, request: Request, call_next):
        actor_id = request.headers.get(ACTOR_HEADER, "").strip()
        request.state.actor_id = actor_id or None
        if actor_id:
            set_current_actor_id(actor_id)
        try:
            return await call_next(request)
        finally:
            clear_current_actor_id()
