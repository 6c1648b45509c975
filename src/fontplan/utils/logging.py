"""
Logging configuration for fontplan.

All messages go through the 'fontplan' logger. When a build is started from
the command line, setup_logger() attaches a console handler and a file
handler writing to a 'logs' subdirectory of the build directory. Log
filename format: fontplan_{timestamp}.log

Only the 5 most recent log files with the 'fontplan_' prefix are kept.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

LOGGER_NAME = "fontplan"


class FontPlanLogger:
    """Centralized logger for fontplan operations."""

    _logger: logging.Logger = logging.getLogger(LOGGER_NAME)
    _current_log_file: Optional[Path] = None

    @classmethod
    def _cleanup_old_logs(cls, logs_dir: Path, keep_count: int = 5) -> None:
        """
        Remove old log files, keeping only the most recent ones.

        Args:
            logs_dir: Directory containing log files
            keep_count: Number of most recent log files to keep (default: 5)
        """
        log_files = sorted(
            logs_dir.glob("fontplan_*.log"),
            key=lambda p: p.stat().st_mtime,
            reverse=True
        )

        for old_log in log_files[keep_count:]:
            try:
                old_log.unlink()
            except OSError as e:
                cls._logger.debug(f"Could not remove old log {old_log}: {e}")

    @classmethod
    def setup_logger(cls, build_dir: str, log_level: int = logging.INFO) -> logging.Logger:
        """
        Attach console and file handlers for one build run.

        Args:
            build_dir: Build directory; logs are written to build_dir/logs
            log_level: Logging level (default: INFO)

        Returns:
            Configured logger instance
        """
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")[:17]

        logs_dir = Path(build_dir) / "logs"
        logs_dir.mkdir(parents=True, exist_ok=True)
        log_path = logs_dir / f"fontplan_{timestamp}.log"

        cls._remove_handlers()
        cls._logger.setLevel(min(log_level, logging.INFO))

        file_handler = logging.FileHandler(log_path, mode='w', encoding='utf-8')
        file_handler.setLevel(log_level)

        console_handler = logging.StreamHandler()
        console_handler.setLevel(log_level)

        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        file_handler.setFormatter(formatter)
        console_handler.setFormatter(logging.Formatter('%(levelname)s: %(message)s'))

        cls._logger.addHandler(file_handler)
        cls._logger.addHandler(console_handler)
        cls._current_log_file = log_path

        cls._logger.debug(f"Log file: {log_path}")

        # done after creating the new file so it is included in the count
        cls._cleanup_old_logs(logs_dir, keep_count=5)

        return cls._logger

    @classmethod
    def _remove_handlers(cls) -> None:
        for handler in cls._logger.handlers[:]:
            cls._logger.removeHandler(handler)
            handler.close()

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Get the current logger instance."""
        return cls._logger

    @classmethod
    def get_log_file_path(cls) -> Optional[Path]:
        """Get the current log file path."""
        return cls._current_log_file

    @classmethod
    def info(cls, message: str) -> None:
        cls._logger.info(message)

    @classmethod
    def warning(cls, message: str) -> None:
        cls._logger.warning(message)

    @classmethod
    def error(cls, message: str) -> None:
        cls._logger.error(message)

    @classmethod
    def debug(cls, message: str) -> None:
        cls._logger.debug(message)

    @classmethod
    def success(cls, message: str) -> None:
        """Log success message (using info level)."""
        cls._logger.info(f"✓ {message}")

    @classmethod
    def cleanup(cls) -> None:
        """Detach the handlers added by setup_logger."""
        cls._remove_handlers()
        cls._current_log_file = None
