import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

from placemap.core.config import settings


class LoggerConfig:
    """
    Application logger: console output plus an optional rotating log file.
    Everything goes through one named logger so the level can be raised at
    runtime when debug mode is switched on.
    """
    def __init__(
        self,
        level: int = logging.INFO,
        logger_name: str = "PlaceMap",
        log_directory: Optional[str] = "logs",
        log_file: str = "placemap.log",
    ):
        self.logger_name = logger_name
        self.level = level
        self.log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        self.log_file_path = (
            os.path.join(os.path.abspath(log_directory), log_file) if log_directory else None
        )

        self.logger = logging.getLogger(self.logger_name)
        self.logger.propagate = False
        try:
            self.setup_logger()
        except OSError as e:
            # no writable log directory; console logging still works
            print(f"Failed to set up log file {self.log_file_path}: {str(e)}")

    def setup_logger(self):
        # re-imports of this module must not stack handlers
        if self.logger.handlers:
            return

        formatter = logging.Formatter(self.log_format)

        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        self.logger.addHandler(console_handler)

        if self.log_file_path:
            os.makedirs(os.path.dirname(self.log_file_path), exist_ok=True)
            file_handler = RotatingFileHandler(
                self.log_file_path, backupCount=3, maxBytes=1024 * 1024 * 5, encoding="utf-8"
            )
            file_handler.setFormatter(formatter)
            self.logger.addHandler(file_handler)

        self.set_level(self.level)

    def set_level(self, level: int):
        self.level = level
        self.logger.setLevel(level)
        for handler in self.logger.handlers:
            handler.setLevel(level)

    def enable_debug(self, enabled: bool):
        """Debug mode lowers the threshold to DEBUG; switching it off restores the configured level."""
        self.set_level(logging.DEBUG if enabled else settings.LOGGER)

    def log(self, level: int, message: str, extra: dict = None):
        if extra:
            details = ", ".join(f"{key}={value!r}" for key, value in extra.items())
            message = f"{message} [{details}]"
        self.logger.log(level, message)


logs = LoggerConfig(
    level=logging.DEBUG if settings.DEBUG_MODE else settings.LOGGER,
    logger_name="PLACEMAP",
    log_directory=settings.LOG_DIRECTORY or None,
)
