"""
Error handling and logging setup for the timeline store.

Provides a small ErrorHandler with a logging configuration helper, a
decorator that logs entry/exit of long-running store operations, and a
context manager that logs a failure before letting it propagate.
"""

import logging
import sys
from functools import wraps
from typing import Any, Callable, List, Optional, Type, TypeVar, Union

T = TypeVar('T')

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def level_from_name(level: Union[int, str]) -> int:
    """Translate 'DEBUG'/'INFO'/... (or an int) into a logging level."""
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).upper())
    if not isinstance(value, int):
        raise ValueError(f"unknown log level: {level}")
    return value


class ErrorHandler:
    """
    Centralized error logging for store operations.

    Attributes:
        logger: Logger the handler writes to
    """

    def __init__(self, logger_name: str = 'timeline_store', configure: bool = False):
        """
        Args:
            logger_name: Logger to write to ('' selects the root logger)
            configure: Install console handlers immediately
        """
        self.logger = logging.getLogger(logger_name)
        self._handlers: List[logging.Handler] = []
        if configure:
            self.setup_logging()

    def setup_logging(self, log_level: Union[int, str] = logging.INFO,
                      log_file: Optional[str] = None) -> None:
        """
        Replace the handlers installed by an earlier call with a console
        handler and an optional file handler sharing one formatter.

        Args:
            log_level: Logging level or level name
            log_file: Optional file to append log records to
        """
        level = level_from_name(log_level)
        for handler in self._handlers:
            self.logger.removeHandler(handler)
            handler.close()
        self._handlers = []
        self.logger.setLevel(level)

        formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        self.logger.addHandler(console_handler)
        self._handlers.append(console_handler)

        if log_file:
            try:
                file_handler = logging.FileHandler(log_file, encoding='utf-8')
            except OSError as e:
                self.logger.error(f"Failed to set up file logging: {e}")
            else:
                file_handler.setLevel(level)
                file_handler.setFormatter(formatter)
                self.logger.addHandler(file_handler)
                self._handlers.append(file_handler)

    def error_context(self,
                      exception: Type[BaseException] = Exception,
                      message: str = "An error occurred in context",
                      log_level: int = logging.ERROR,
                      reraise: bool = True):
        """
        Context manager that logs exceptions of the given type.

        Args:
            exception: Exception type to log
            message: Message prefix
            log_level: Logging level
            reraise: Let the exception propagate after logging it
        """
        class ErrorContext:
            def __init__(self, handler, exception, message, log_level, reraise):
                self.handler = handler
                self.exception = exception
                self.message = message
                self.log_level = log_level
                self.reraise = reraise

            def __enter__(self):
                return self

            def __exit__(self, exc_type, exc_val, exc_tb):
                if exc_type is not None and issubclass(exc_type, self.exception):
                    full_message = f"{self.message}: {exc_val}"
                    self.handler.logger.log(
                        self.log_level, full_message,
                        exc_info=(exc_type, exc_val, exc_tb)
                    )
                    return not self.reraise
                return False

        return ErrorContext(self, exception, message, log_level, reraise)

    def log_execution(self, level: int = logging.DEBUG):
        """
        Decorator logging entry to and exit from a function.

        Args:
            level: Logging level for the entry/exit messages
        """
        def decorator(func: Callable[..., T]) -> Callable[..., T]:
            @wraps(func)
            def wrapper(*args: Any, **kwargs: Any) -> T:
                self.logger.log(level, f"Entering {func.__qualname__}")
                try:
                    result = func(*args, **kwargs)
                except Exception as e:
                    self.logger.log(level, f"Exiting {func.__qualname__} (error: {e})")
                    raise
                self.logger.log(level, f"Exiting {func.__qualname__} (success)")
                return result
            return wrapper
        return decorator


_root_handler = ErrorHandler(logger_name='')


def configure_logging(log_level: Union[int, str] = logging.INFO,
                      log_file: Optional[str] = None) -> ErrorHandler:
    """Configure the root logger for command-line use."""
    _root_handler.setup_logging(log_level, log_file)
    return _root_handler


default_handler = ErrorHandler()
error_context = default_handler.error_context
log_execution = default_handler.log_execution
