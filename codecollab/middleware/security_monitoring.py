"""Security monitoring middleware: request volume, repeated auth failures, scanner paths."""
import logging

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from codecollab.core.rate_tracker import RateTracker
from codecollab.core.security_events import security_event

logger = logging.getLogger(__name__)

SUSPICIOUS_PATHS = ("/wp-admin", "/phpmyadmin", "/.env", "/backup", "/debug")
AUTH_FAILURE_STATUSES = (401, 403)


class SecurityMonitoringMiddleware(BaseHTTPMiddleware):
    """
    Observes traffic and reports anomalies to the security event sink.

    Never blocks a request; the trackers are owned by the application
    and passed in, so tests and the sweep job see the same instances.
    """

    def __init__(
        self,
        app,
        request_tracker: RateTracker,
        failed_auth_tracker: RateTracker,
        suspicious_paths: tuple[str, ...] = SUSPICIOUS_PATHS,
    ):
        super().__init__(app)
        self.request_tracker = request_tracker
        self.failed_auth_tracker = failed_auth_tracker
        self.suspicious_paths = suspicious_paths

    def _is_suspicious(self, path: str) -> bool:
        lowered = path.lower()
        return any(lowered.startswith(p) for p in self.suspicious_paths)

    async def dispatch(self, request: Request, call_next):
        ip = request.client.host if request.client else "unknown"
        path = request.url.path
        user_agent = request.headers.get("user-agent")

        if self._is_suspicious(path):
            security_event(
                "SUSPICIOUS_PATH_ACCESS",
                severity="high",
                ip=ip,
                path=path,
                user_agent=user_agent,
            )

        # Reported once, when the window first fills up to the threshold.
        hits = self.request_tracker.record(ip)
        if hits == self.request_tracker.threshold:
            security_event(
                "HIGH_REQUEST_VOLUME",
                severity="high",
                ip=ip,
                request_count=hits,
                window_seconds=int(self.request_tracker.window.total_seconds()),
            )

        response = await call_next(request)

        if response.status_code in AUTH_FAILURE_STATUSES:
            failures = self.failed_auth_tracker.record(ip)
            if failures == self.failed_auth_tracker.threshold:
                security_event(
                    "MULTIPLE_FAILED_AUTH_ATTEMPTS",
                    severity="high",
                    ip=ip,
                    failed_attempts=failures,
                    path=path,
                    user_agent=user_agent,
                )

        return response
