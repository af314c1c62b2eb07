import logging
from datetime import datetime
from typing import Any, Dict, Optional, Tuple


def log_request_to_console(
    url: str, client_info: Optional[Tuple[str, int]], request_data: Dict[str, Any]
):
    """
    Logs a concise, single-line summary of an incoming progression update.
    The shared secret is never included.
    """
    time_str = datetime.now().strftime("%H:%M")
    host, port = client_info if client_info else ("unknown", 0)

    user_id = request_data.get("userId", "N/A")
    xp = request_data.get("xp", "N/A")
    loaded = request_data.get("loaded", "N/A")

    log_message = f"{time_str} - {host}:{port} - user: {user_id}, xp: {xp}, loaded: {loaded} - {url}"
    logging.info(log_message)
