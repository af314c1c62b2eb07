import json
import logging
import os
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Optional

import httpx

from .error_handler import classify_response, mask_credential

# Module-level state for resilience
_file_handler = None
_fallback_mode = False

LOG_DIR = os.getenv("BRIDGE_LOG_DIR", "logs")


# Custom JSON formatter for structured logs (defined at module level for reuse)
class JsonFormatter(logging.Formatter):
    def format(self, record):
        # The message is already a dict, so we just format it as a JSON string
        return json.dumps(record.msg)


def _create_file_handler():
    """Create file handler with directory auto-recreation."""
    global _file_handler, _fallback_mode

    try:
        os.makedirs(LOG_DIR, exist_ok=True)
        handler = RotatingFileHandler(
            os.path.join(LOG_DIR, "failures.log"),
            maxBytes=5 * 1024 * 1024,  # 5 MB
            backupCount=2,
            delay=True,
        )
        handler.setFormatter(JsonFormatter())
        _file_handler = handler
        _fallback_mode = False
        return handler
    except OSError as e:
        logging.warning(f"Cannot create failure log file handler: {e}")
        _fallback_mode = True
        return None


def setup_failure_logger():
    """Sets up a dedicated JSON logger for writing detailed write failures."""
    logger = logging.getLogger("failure_logger")
    logger.setLevel(logging.INFO)
    logger.propagate = False

    # Remove existing handlers to prevent duplicates
    logger.handlers.clear()

    handler = _create_file_handler()
    if handler:
        logger.addHandler(handler)

    # Always add a NullHandler as fallback to prevent "no handlers" warning
    if not logger.handlers:
        logger.addHandler(logging.NullHandler())

    return logger


def _ensure_handler_valid():
    """Recreate the file handler if an earlier write put us in fallback mode."""
    if _file_handler is None or _fallback_mode:
        handler = _create_file_handler()
        if handler:
            failure_logger = logging.getLogger("failure_logger")
            failure_logger.handlers.clear()
            failure_logger.addHandler(handler)


failure_logger = setup_failure_logger()

main_lib_logger = logging.getLogger("rank_bridge")


def log_failure(
    api_key: str,
    group_id: str,
    user_id: int,
    role_id,
    attempt: int,
    response: httpx.Response,
    request_id: Optional[str] = None,
):
    """
    Logs a failed membership write in full to failures.log and as a concise
    line to the main library logger.
    """
    global _fallback_mode

    classified = classify_response(response)
    raw_response = response.text or None

    detailed_log_data = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "api_key_ending": mask_credential(api_key),
        "group_id": group_id,
        "user_id": user_id,
        "target_role_id": role_id,
        "attempt_number": attempt,
        "error_type": classified.error_type,
        "status_code": response.status_code,
        "transient": classified.is_transient,
        "raw_response": raw_response[:10000] if raw_response else None,
        "request_id": request_id or response.headers.get("x-request-id"),
    }

    summary_message = (
        f"Membership write for user {user_id} failed with key {mask_credential(api_key)} "
        f"(Attempt {attempt}, Status: {response.status_code}, {classified.error_type}). "
        f"See failures.log for details."
    )

    _ensure_handler_valid()

    try:
        failure_logger.error(detailed_log_data)
    except OSError as e:
        _fallback_mode = True
        logging.error(f"Failed to write to failures.log: {e}")
        logging.error(f"Failure summary: {summary_message}")

    main_lib_logger.error(summary_message)
