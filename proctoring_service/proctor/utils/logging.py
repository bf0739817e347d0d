"""
Proctoring Logger - one line per lifecycle step or violation

Format: [PROCTOR] session=<id> event=<name> key=value ...
"""

import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR
}


def _format_value(value: Any) -> str:
    if isinstance(value, float):
        return f"{value:.2f}"
    text = str(value)
    return f'"{text}"' if " " in text else text


def log_proctor_event(
    session_id: Optional[str],
    event_type: str,
    details: Optional[Dict[str, Any]] = None,
    level: str = "info"
):
    """
    Args:
        session_id: proctoring session, or None before one exists
        event_type: session_start, violation, batch_flushed, ...
        details: rendered as key=value pairs
        level: debug, info, warning or error
    """
    parts = [f"[PROCTOR] session={session_id or '-'} event={event_type}"]
    for key, value in (details or {}).items():
        parts.append(f"{key}={_format_value(value)}")

    logger.log(LEVELS.get(level, logging.INFO), " ".join(parts))


def log_session_start(session_id: str, interview_id: str):
    log_proctor_event(session_id, "session_start", {"interview": interview_id})


def log_session_end(session_id: str, integrity_score: int, risk_level: str, total_violations: int):
    log_proctor_event(session_id, "session_end", {
        "integrity": integrity_score,
        "risk": risk_level,
        "violations": total_violations
    })


def log_violation(session_id: Optional[str], violation_type: str, confidence: float, message: str):
    """Emitted (post-debounce) violations only"""
    log_proctor_event(
        session_id,
        "violation",
        {"type": violation_type, "confidence": confidence, "message": message},
        level="warning"
    )


def log_batch_flushed(session_id: str, count: int, trigger: str):
    log_proctor_event(session_id, "batch_flushed", {"count": count, "trigger": trigger}, level="debug")


def log_interview_flagged(session_id: str, interview_id: str, risk_level: str):
    log_proctor_event(
        session_id,
        "interview_flagged",
        {"interview": interview_id, "risk": risk_level},
        level="warning"
    )
