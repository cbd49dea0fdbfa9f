import asyncio
import logging
import signal
import sys
import webbrowser
from pathlib import Path
from typing import List, Optional

from studio_sync.errors import StudioError
from studio_sync.server.config import StudioConfig
from studio_sync.server.constants import ServerConstants
from studio_sync.websocket.server import TransportServer


# Configure logging
logger = logging.getLogger(__name__)


USAGE = f"""Usage: studio-sync <path-to-spec-file> [OPTIONS]

Options:
  --port=PORT            - Port for Studio and the live server (default: {ServerConstants.DEFAULT_PORT})
  --host=HOST            - Interface to bind to (default: {ServerConstants.DEFAULT_HOST})
  --remote               - Use the hosted Studio instead of serving it locally
  --remote-address=URL   - Where the hosted Studio lives (default: {ServerConstants.DEFAULT_REMOTE_ADDRESS})
  --static-dir=DIR       - Directory with the Studio build (local mode)
  --no-open              - Do not open a browser window
  --no-signals           - Disable signal handlers

Logging Options:
  --log-file=PATH        - Log to file (default: stdout only)
  --log-level=LEVEL      - Logging level: DEBUG, INFO, WARNING, ERROR (default: INFO)"""


def setup_logging(log_file: Path = None, level: str = "INFO"):
    """
    Configure logging to both file and console.

    Args:
        log_file: Path to log file (optional)
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    # Create formatters
    detailed_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    simple_formatter = logging.Formatter(
        '%(levelname)s: %(message)s'
    )

    # Root logger configuration
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    # Clear existing handlers
    root_logger.handlers = []

    # Console handler (simple format)
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, level.upper()))
    console_handler.setFormatter(simple_formatter)
    root_logger.addHandler(console_handler)

    # File handler (detailed format)
    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file, mode='a')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(detailed_formatter)
        root_logger.addHandler(file_handler)

        logger.info(f"Logging to file: {log_file}")

    return root_logger


def open_browser(url: str) -> None:
    """Open the Studio URL; failures are ignored."""
    try:
        webbrowser.open(url)
    except Exception as e:
        logger.debug(f"Could not open browser: {e}")


def parse_args(argv: List[str]) -> dict:
    """
    Parse `<file> [--key=value ...]` arguments.

    Args:
        argv: Arguments without the program name

    Returns:
        Dictionary with config fields plus logging and signal options

    Raises:
        ValueError: On a missing file argument or an invalid option
    """
    if not argv or argv[0].startswith("--"):
        raise ValueError("Missing path to the specification file")

    options = {
        "file_path": Path(argv[0]),
        "use_signals": True,
        "log_file": None,
        "log_level": "INFO",
    }

    for arg in argv[1:]:
        if arg.startswith("--port="):
            options["port"] = int(arg.split("=", 1)[1])
        elif arg.startswith("--host="):
            options["host"] = arg.split("=", 1)[1]
        elif arg == "--remote":
            options["remote"] = True
        elif arg.startswith("--remote-address="):
            options["remote_address"] = arg.split("=", 1)[1]
        elif arg.startswith("--static-dir="):
            options["static_dir"] = Path(arg.split("=", 1)[1])
        elif arg == "--no-open":
            options["open_browser"] = False
        elif arg == "--no-signals":
            options["use_signals"] = False
        elif arg.startswith("--log-file="):
            options["log_file"] = Path(arg.split("=", 1)[1])
        elif arg.startswith("--log-level="):
            level = arg.split("=", 1)[1].upper()
            if level not in ("DEBUG", "INFO", "WARNING", "ERROR"):
                raise ValueError(f"Invalid log level: {level}")
            options["log_level"] = level
        else:
            raise ValueError(f"Unknown option: {arg}")

    return options


async def run_live_server(config: StudioConfig, use_signals: bool = True,
                          stop_event: Optional[asyncio.Event] = None) -> None:
    """Run the live server until a stop signal arrives."""
    server = TransportServer(config)
    await server.start()

    url = server.studio_url
    print(f"Studio is running at {url}")
    print(f"Watching changes on file {config.file_path}")

    loop = asyncio.get_running_loop()
    if config.open_browser:
        # Fire and forget; webbrowser may block while spawning a process
        loop.run_in_executor(None, open_browser, url)

    # Set up graceful shutdown
    stop_event = stop_event or asyncio.Event()

    def signal_handler():
        print("\nShutting down...")
        stop_event.set()

    if use_signals:
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, signal_handler)

    # Wait for stop signal
    await stop_event.wait()

    await server.stop()

    stats = server.service.get_stats()
    logger.info(
        f"Live server stopped: {stats['broadcaster_broadcast']} messages broadcast, "
        f"{stats['writes']} writes, {stats['write_errors']} write errors"
    )


def main(argv: Optional[List[str]] = None) -> int:
    argv = sys.argv[1:] if argv is None else argv

    try:
        options = parse_args(argv)
    except ValueError as e:
        print(f"Error: {e}\n")
        print(USAGE)
        return 1

    use_signals = options.pop("use_signals")
    log_file = options.pop("log_file")
    log_level = options.pop("log_level")

    # Setup logging
    setup_logging(log_file=log_file, level=log_level)

    try:
        config = StudioConfig(**options)
    except ValueError as e:
        logger.error(str(e))
        return 1

    try:
        asyncio.run(run_live_server(config, use_signals))
    except StudioError as e:
        logger.error(str(e))
        return 1
    except (OSError, OverflowError) as e:
        logger.error(f"Cannot start live server on port {config.port}: {e}")
        return 1
    except KeyboardInterrupt:
        print("\nShutdown complete.")

    return 0


if __name__ == "__main__":
    sys.exit(main())
