"""
Logging configuration for feed-mirror.

This module sets up the logging system with multiple outputs:
    - Console: Real-time progress with tqdm-compatible formatting
    - log_full_<ts>.log: Complete log of all events (DEBUG and above)
    - log_errors_<ts>.log: Only ERROR and CRITICAL level messages
    - feed_failures_<ts>.log: Feeds skipped during a pass, with their URLs
    - append_failures_<ts>.log: Videos that could not be added to the playlist

The logging system follows the principle: everything to screen is also saved
to file, then filtered into specialized files.

Log File Locations:
    All log files are created in <storage directory>/logs.
    Each run gets its own timestamped files (no rotation).

Usage:
    from feed_mirror.core.logger import setup_logging, get_logger

    setup_logging(log_dir)  # Call once at startup
    logger = get_logger(__name__)  # Get logger for each module

    logger.info("Starting sync")
    log_feed_failure(logger, "UC...", feed_url, "HTTP 404")
"""

import logging
import sys
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import TextIO

from tqdm import tqdm


# Log format for file output (detailed with timestamp)
FILE_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Log format for console output (compact, tqdm-friendly)
CONSOLE_LOG_FORMAT = "%(levelname)s: %(message)s"


class Colors:
    """ANSI color codes for terminal output."""
    RESET = "\033[0m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    CYAN = "\033[36m"
    WHITE = "\033[37m"
    BOLD = "\033[1m"


class ColoredConsoleFormatter(logging.Formatter):
    """
    Custom formatter that adds colors to console output.

    Colors:
        - DEBUG: Blue
        - INFO: Green
        - WARNING: Yellow
        - ERROR: Red
        - CRITICAL: Bold Red
    """

    LEVEL_COLORS = {
        logging.DEBUG: Colors.BLUE,
        logging.INFO: Colors.GREEN,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.BOLD + Colors.RED,
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, Colors.WHITE)
        colored_levelname = f"{color}{record.levelname}{Colors.RESET}"
        return f"{colored_levelname}: {record.getMessage()}"


class TqdmLoggingHandler(logging.Handler):
    """
    Custom logging handler that writes to console without breaking progress bars.

    Standard logging to stderr can interfere with in-place progress
    rendering, causing visual glitches. This handler uses tqdm.write()
    which prints the message above any active bar.

    Attributes:
        stream: The output stream (defaults to sys.stderr).
    """

    def __init__(self, stream: TextIO = sys.stderr) -> None:
        super().__init__()
        self.stream = stream

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            tqdm.write(msg, file=self.stream)
        except Exception:
            self.handleError(record)


class ReportFileHandler(logging.Handler, ABC):
    """
    Base handler that copies tagged records into a plain-text report file.

    Subclasses declare the attribute that marks a record as relevant
    (TAG_ATTRIBUTE) and format the report entry in format_entry().
    Records without the tag are ignored, so the handler can sit on the
    root logger next to the regular handlers.

    Attributes:
        report_path: Path to the report file.
        report_file: Open file handle (opened by open()).
    """

    TAG_ATTRIBUTE = ""

    def __init__(self, report_path: Path) -> None:
        """
        Initialize the report handler.

        Args:
            report_path: Path to the report file.
                         File will be created/overwritten by open().
        """
        super().__init__()
        self.report_path = report_path
        self.report_file: TextIO | None = None

    def open(self) -> None:
        """
        Open the report file for writing.

        Called by setup_logging() after handler is created.
        File is opened in write mode (overwrites existing content).
        """
        self.report_file = open(self.report_path, "w", encoding="utf-8")

    @abstractmethod
    def format_entry(self, record: logging.LogRecord) -> str:
        """Return the report text for one tagged record."""

    def emit(self, record: logging.LogRecord) -> None:
        if not hasattr(record, self.TAG_ATTRIBUTE):
            return

        if self.report_file is None:
            return

        try:
            self.report_file.write(self.format_entry(record))
            self.report_file.flush()
        except Exception:
            self.handleError(record)

    def close(self) -> None:
        """
        Close the report file handle.

        Called automatically when logging is shut down.
        Safe to call multiple times.
        """
        if self.report_file is not None:
            try:
                self.report_file.close()
            except OSError:
                pass
            self.report_file = None
        super().close()


class FeedFailureHandler(ReportFileHandler):
    """
    Captures feeds that were skipped during a pass.

    Output format (feed_failures_<ts>.log):

        UCxxxxxxxxxxxxxxxxxxxxxx
        https://www.youtube.com/feeds/videos.xml?channel_id=UCxxxxxxxxxxxxxxxxxxxxxx
        Reason: Feed request failed with status 404

    The handler looks for these extra fields in log records:
        - 'feed_failed_key': Channel id of the feed
        - 'feed_failed_url': Feed URL
        - 'feed_failed_reason': Short failure reason
    """

    TAG_ATTRIBUTE = "feed_failed_key"

    def format_entry(self, record: logging.LogRecord) -> str:
        feed_key = getattr(record, "feed_failed_key", "Unknown")
        url = getattr(record, "feed_failed_url", "")
        reason = getattr(record, "feed_failed_reason", "")
        return f"{feed_key}\n{url}\nReason: {reason}\n\n"


class AppendFailureHandler(ReportFileHandler):
    """
    Captures videos that could not be appended to the destination playlist.

    Output format (append_failures_<ts>.log):

        dQw4w9WgXcQ
        https://www.youtube.com/watch?v=dQw4w9WgXcQ
        Reason: API call failed: 403

    The handler looks for these extra fields in log records:
        - 'append_failed_video_id': Video id
        - 'append_failed_reason': Short failure reason
    """

    TAG_ATTRIBUTE = "append_failed_video_id"

    def format_entry(self, record: logging.LogRecord) -> str:
        video_id = getattr(record, "append_failed_video_id", "Unknown")
        reason = getattr(record, "append_failed_reason", "")
        return f"{video_id}\nhttps://www.youtube.com/watch?v={video_id}\nReason: {reason}\n\n"


class ErrorOnlyFilter(logging.Filter):
    """
    Filter that only allows ERROR and CRITICAL level records.

    Used by the error log file handler to exclude DEBUG, INFO, and WARNING.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.ERROR


def setup_logging(log_dir: Path, verbose: bool = False) -> None:
    """
    Configure the logging system for the application.

    This function should be called ONCE at application startup, after
    the configuration is loaded but before any other operations.

    Args:
        log_dir: Directory where log files will be created.
                 Created if it doesn't exist.
        verbose: If True, the console shows DEBUG records too.

    Behavior:
        1. Create log_dir if it doesn't exist
        2. Generate timestamp for this run's log files
        3. Configure root logger level to DEBUG
        4. Console handler (TqdmLoggingHandler), INFO or DEBUG
        5. Full log file handler, DEBUG
        6. Error log file handler, filtered to ERROR+
        7. Feed failure and append failure report handlers
    """
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # Remove any existing handlers
    root_logger.handlers.clear()

    console_handler = TqdmLoggingHandler()
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(ColoredConsoleFormatter())
    root_logger.addHandler(console_handler)

    full_handler = logging.FileHandler(
        log_dir / f"log_full_{timestamp}.log", mode="w", encoding="utf-8"
    )
    full_handler.setLevel(logging.DEBUG)
    full_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT))
    root_logger.addHandler(full_handler)

    error_handler = logging.FileHandler(
        log_dir / f"log_errors_{timestamp}.log", mode="w", encoding="utf-8"
    )
    error_handler.setLevel(logging.DEBUG)  # Filter handles the level restriction
    error_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT))
    error_handler.addFilter(ErrorOnlyFilter())
    root_logger.addHandler(error_handler)

    feed_handler = FeedFailureHandler(log_dir / f"feed_failures_{timestamp}.log")
    feed_handler.open()
    root_logger.addHandler(feed_handler)

    append_handler = AppendFailureHandler(log_dir / f"append_failures_{timestamp}.log")
    append_handler.open()
    root_logger.addHandler(append_handler)

    # aiohttp and asyncio are chatty at DEBUG
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("aiohttp").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    This is a convenience wrapper around logging.getLogger() that ensures
    consistent logger naming throughout the application.

    Args:
        name: The logger name, typically __name__ of the calling module.

    Note:
        Loggers obtained before setup_logging() is called will have no
        handlers and will not produce output.
    """
    return logging.getLogger(name)


def format_added_message(video_id: str) -> str:
    """Format an 'Added' message with colors."""
    return (
        f"{Colors.GREEN}Added{Colors.RESET}: "
        f"{Colors.CYAN}https://www.youtube.com/watch?v={video_id}{Colors.RESET}"
    )


def format_pass_message(mode: str, added: int, error: str | None = None) -> str:
    """
    Format the end-of-pass message.

    Args:
        mode: "latest" or "incremental".
        added: Number of videos added.
        error: Fatal error message, if the pass aborted.
    """
    if error:
        return (
            f"{Colors.RED}{mode.capitalize()} sync failed{Colors.RESET}: {error} "
            f"(added before failure: {added})"
        )
    return (
        f"{mode.capitalize()} sync finished. "
        f"Added {Colors.GREEN}{added}{Colors.RESET} video(s)."
    )


def log_feed_failure(
    logger: logging.Logger,
    feed_key: str,
    feed_url: str,
    reason: str
) -> None:
    """
    Log a feed that was skipped for this pass.

    Logs an ERROR level message and attaches the extra fields that
    FeedFailureHandler uses to write feed_failures.log.

    Example:
        log_feed_failure(logger, "UCxyz", feed_url(feed_key), "HTTP 404")
    """
    logger.error(
        f"Skipping feed {feed_key}: {reason}",
        extra={
            "feed_failed_key": feed_key,
            "feed_failed_url": feed_url,
            "feed_failed_reason": reason,
        }
    )


def log_append_failure(logger: logging.Logger, video_id: str, reason: str) -> None:
    """
    Log a video that could not be added to the destination playlist.

    Logs an ERROR level message and attaches the extra fields that
    AppendFailureHandler uses to write append_failures.log.
    """
    logger.error(
        f"Failed to add video {video_id}: {reason}",
        extra={
            "append_failed_video_id": video_id,
            "append_failed_reason": reason,
        }
    )


def shutdown_logging() -> None:
    """
    Properly shut down the logging system.

    Flushes and closes every handler on the root logger and removes them.
    Typically called in a finally block at application exit.
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        try:
            handler.flush()
            handler.close()
        except OSError:
            pass
        root_logger.removeHandler(handler)
