from threading import local

from dramatiq.middleware import Middleware
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.types import ASGIApp

from src.network.database.session import db


class HTTPSessionManagerMiddleware(BaseHTTPMiddleware):
    """
    One session per request. Client errors (4xx) still commit: a rejected
    code must persist its attempt counter and the lockout failure it caused.
    Server errors and unhandled exceptions roll back
    """

    def __init__(self, app: ASGIApp, commit_on_success: bool = True):
        super().__init__(app)
        self.commit_on_success = commit_on_success

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint):
        with db(commit_on_success=self.commit_on_success):
            response = await call_next(request)
            if response.status_code >= 500:
                db.session.rollback()

        return response


class DramatiqSessionMiddleware(Middleware):
    """
    One session per message, committed when the actor returns and rolled back when it raises
    """

    _managers = local()

    def before_process_message(self, broker, message):
        manager = db(commit_on_success=True)
        manager.enter()
        self._managers.current = manager

    def after_process_message(self, broker, message, *, result=None, exception=None):
        manager = getattr(self._managers, 'current', None)
        if manager is None:
            return
        self._managers.current = None
        manager.exit(exception=exception)

    after_skip_message = after_process_message
