"""
Security event sink.

Every authentication denial, authorization denial and monitoring
anomaly goes through `security_event` exactly once, on the dedicated
`codecollab.security` logger.  Storage and alerting are left to
whatever handlers the deployment attaches to that logger; each record
carries `security_event`, `severity` and `details` attributes so a
JSON formatter can pick them up without parsing the message.
"""

import logging
from typing import Any

logger = logging.getLogger("codecollab.security")

SEVERITY_LEVELS: dict[str, int] = {
    "low": logging.INFO,
    "medium": logging.WARNING,
    "high": logging.ERROR,
}


def mask_token(token: str | None) -> str | None:
    if not token:
        return None
    return token[:10] + "..."


def security_event(event: str, severity: str = "medium", **details: Any) -> None:
    level = SEVERITY_LEVELS.get(severity, logging.WARNING)
    logger.log(
        level,
        "SECURITY_EVENT %s %s",
        event,
        details,
        extra={"security_event": event, "severity": severity, "details": details},
    )


def session_event(name: str, **details: Any) -> None:
    security_event(f"SESSION_{name.upper()}", severity="low", **details)
