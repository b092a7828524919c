import sys
from typing import Optional
from loguru import logger


class LoggerManager:
    def __init__(self):
        self.console_sink_id = None
        self.file_sink_id = None

        # Always remove the default handler
        logger.remove()

    def enable_console(self, level: str = "INFO"):
        if self.console_sink_id is None:
            self.console_sink_id = logger.add(sys.stdout, level=level, colorize=True)

    def disable_console(self):
        if self.console_sink_id is not None:
            logger.remove(self.console_sink_id)
            self.console_sink_id = None

    def enable_file(self, path: str, level: str = "INFO", rotation: Optional[str] = "10 MB"):
        if self.file_sink_id is None:
            self.file_sink_id = logger.add(path, level=level, rotation=rotation)

    def disable_file(self):
        if self.file_sink_id is not None:
            logger.remove(self.file_sink_id)
            self.file_sink_id = None

    def configure(self, config) -> None:
        """Apply a LoggingConfig."""
        if config.enable_console:
            self.enable_console(level=config.level)
        else:
            self.disable_console()
        if config.log_file:
            self.enable_file(config.log_file, level=config.level)

    def get_logger(self):
        return logger


log_manager = LoggerManager()
