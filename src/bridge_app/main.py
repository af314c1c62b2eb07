import time

import argparse
import logging
import os
import sys
from pathlib import Path

# --- Argument Parsing (BEFORE heavy imports) ---
parser = argparse.ArgumentParser(description="XP to group rank bridge")
parser.add_argument(
    "--host", type=str, default="0.0.0.0", help="Host to bind the server to."
)
parser.add_argument(
    "--port",
    type=int,
    default=None,
    help="Port to run the server on. Defaults to $PORT, then 3000.",
)
parser.add_argument(
    "--enable-request-logging", action="store_true", help="Enable request logging."
)

# Add the 'src' directory to the Python path
sys.path.append(str(Path(__file__).resolve().parent.parent))


def configure_logging(log_dir: Path):
    """Colored console output plus INFO and rank_bridge DEBUG log files."""
    import colorlog

    log_dir.mkdir(parents=True, exist_ok=True)

    # Configure a console handler with color (INFO and above only, no DEBUG)
    console_handler = colorlog.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(
        colorlog.ColoredFormatter(
            "%(log_color)s%(message)s",
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "red,bg_white",
            },
        )
    )

    # Configure a file handler for INFO-level logs and higher
    info_file_handler = logging.FileHandler(log_dir / "bridge.log", encoding="utf-8")
    info_file_handler.setLevel(logging.INFO)
    info_file_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )

    # Configure a dedicated file handler for all DEBUG-level logs
    debug_file_handler = logging.FileHandler(
        log_dir / "bridge_debug.log", encoding="utf-8"
    )
    debug_file_handler.setLevel(logging.DEBUG)
    debug_file_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )

    # Ensure the debug handler ONLY gets DEBUG messages from rank_bridge
    class BridgeDebugFilter(logging.Filter):
        def filter(self, record):
            return record.levelno == logging.DEBUG and record.name.startswith(
                "rank_bridge"
            )

    debug_file_handler.addFilter(BridgeDebugFilter())

    # Get the root logger and set it to DEBUG to capture all messages
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.addHandler(info_file_handler)
    root_logger.addHandler(console_handler)
    root_logger.addHandler(debug_file_handler)

    # Silence other noisy loggers by setting their level higher than root
    logging.getLogger("uvicorn").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def main(argv=None):
    args = parser.parse_args(argv)
    _start_time = time.time()

    from dotenv import load_dotenv
    from rich.console import Console

    root_dir = Path.cwd()
    load_dotenv(root_dir / ".env")

    console = Console()
    with console.status("[dim]Loading server components...", spinner="dots"):
        import uvicorn

        from rank_bridge import BridgeSettings
        from bridge_app.server import create_app

    configure_logging(Path(os.getenv("BRIDGE_LOG_DIR", str(root_dir / "logs"))))

    settings = BridgeSettings.from_env()
    settings.warn_missing()
    port = args.port if args.port is not None else settings.port

    if args.enable_request_logging:
        logging.info("Request logging is enabled.")

    app = create_app(settings, enable_request_logging=args.enable_request_logging)

    _elapsed = time.time() - _start_time
    console.print("━" * 70)
    console.print(f"Starting rank bridge on {args.host}:{port}")
    console.print(f"Group: {settings.group_id or '✗ Not Set'}")
    console.print(
        f"Shared secret: {'✓ Set' if settings.shared_secret else '✗ Not Set (all updates will be rejected)'}"
    )
    console.print(f"Tiers: {len(settings.tiers)}, max managed rank: {settings.max_managed_rank}")
    console.print("━" * 70)
    logging.debug(f"Modules loaded in {_elapsed:.2f}s")
    logging.info(f"Server running on port {port}")

    uvicorn.run(app, host=args.host, port=port)


if __name__ == "__main__":
    main()
