"""The logging configuration module."""

import json
import logging
import sys
from datetime import datetime
from typing import Optional

_PACKAGE = "subscription_mirror"

_RESERVED_RECORD_KEYS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "taskName",
    "getMessage",
    "custom_dimensions",
    "exc_info",
    "exc_text",
    "stack_info",
}


class JSONFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging.

    Formats log records as JSON with support for custom dimensions, so that webhook,
    plan-change and reconciliation logs can be filtered by email, event type or
    subscription id in the log sink.
    """

    def __init__(self):
        """Initialize the formatter with a module path cache."""
        super().__init__()
        self._module_cache = {}

    def _get_module_path(self, record: logging.LogRecord) -> str:
        """Extract the full module path from the log record.

        Args:
        ----
            record (logging.LogRecord): The log record

        Returns:
        -------
            str: Full module path (e.g., 'subscription_mirror.platform.billing.reconciliation')

        """
        pathname = record.pathname
        if pathname in self._module_cache:
            return self._module_cache[pathname]

        module_path = record.module
        parts = pathname.replace("\\", "/").split("/")
        package_indices = [i for i, part in enumerate(parts) if part == _PACKAGE]
        if package_indices:
            module_parts = parts[package_indices[-1] :]
            if module_parts[-1].endswith(".py"):
                module_parts[-1] = module_parts[-1][:-3]
            module_path = ".".join(module_parts)

        self._module_cache[pathname] = module_path
        return module_path

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record as JSON.

        Args:
        ----
            record (logging.LogRecord): The log record to format

        Returns:
        -------
            str: JSON-formatted log message

        """
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": self._get_module_path(record),
            "function": record.funcName,
            "line": record.lineno,
        }

        if getattr(record, "custom_dimensions", None):
            log_entry["custom_dimensions"] = record.custom_dimensions

        for key, value in record.__dict__.items():
            if key in _RESERVED_RECORD_KEYS:
                continue
            try:
                json.dumps(value)
                log_entry[key] = value
            except (TypeError, ValueError):
                log_entry[key] = str(value)

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


class _ContextualLogger(logging.LoggerAdapter):
    """A LoggerAdapter that supports both custom dimensions and prefixes."""

    def __init__(
        self,
        logger: logging.Logger,
        prefix: str = "",
        dimensions: Optional[dict] = None,
    ) -> None:
        """Initialize the contextual logger.

        Args:
        ----
            logger (logging.Logger): Base logger instance
            dimensions (Optional[dict]): Custom dimensions for structured logging
            prefix (str): Optional prefix for log messages

        """
        super().__init__(logger, {})
        self.prefix = prefix
        self.dimensions = dimensions or {}

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        """Process the log message and keywords.

        Args:
        ----
            msg (str): The log message
            kwargs (dict): The logging keywords

        Returns:
        -------
            Tuple[str, dict]: Processed message and keywords

        """
        if self.prefix:
            msg = f"{self.prefix}{msg}"

        if "extra" not in kwargs:
            kwargs["extra"] = {}

        if self.dimensions:
            kwargs["extra"]["custom_dimensions"] = {
                **kwargs["extra"].get("custom_dimensions", {}),
                **self.dimensions,
            }

        return msg, kwargs

    def with_prefix(self, prefix: str) -> "_ContextualLogger":
        """Create a new logger with an additional prefix while maintaining dimensions.

        Args:
        ----
            prefix (str): The prefix to add

        Returns:
        -------
            _ContextualLogger: New logger instance with updated prefix

        """
        return _ContextualLogger(self.logger, prefix, self.dimensions)

    def with_context(self, **dimensions: str | int | float | bool | None) -> "_ContextualLogger":
        """Create a new logger with additional context dimensions.

        Args:
        ----
            dimensions: Keyword arguments to add to dimensions

        Returns:
        -------
            _ContextualLogger: New logger instance with updated dimensions

        """
        new_dimensions = {**self.dimensions, **dimensions}
        return _ContextualLogger(self.logger, self.prefix, new_dimensions)


ContextualLogger = _ContextualLogger


class LoggerConfigurator:
    """Configures loggers with support for dimensions and prefixes.

    Configuration:
    -------------
    Uses settings from subscription_mirror.core.config:
    - Automatically uses text format when LOCAL_DEVELOPMENT=True, JSON format otherwise
    - LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Examples:
    --------
    Create a logger for a component:
    ```python
    logger = LoggerConfigurator.configure_logger(
        __name__, dimensions={"component": "reconciliation"}
    )
    logger.info("Starting reconciliation")
    ```

    Add per-event context:
    ```python
    log = logger.with_context(event_type="subscription.updated", stripe_event_id="evt_123")
    log.info("Applying mirror update")
    ```

    """

    @staticmethod
    def configure_logger(
        name: str,
        prefix: str = "",
        dimensions: Optional[dict] = None,
        level: Optional[str] = None,
    ) -> _ContextualLogger:
        """Configure and return a logger with the given name and initial context.

        Args:
        ----
            name (str): Logger name (typically __name__)
            dimensions (Optional[dict]): Initial custom dimensions
            prefix (str): Initial prefix for log messages
            level (Optional[str]): Fixed level, overriding the configured LOG_LEVEL

        Returns:
        -------
            _ContextualLogger: Configured logger with context support

        """
        logger = logging.getLogger(name)

        # Import settings here to avoid circular imports
        from subscription_mirror.core.config import settings

        log_level = level or ("DEBUG" if settings.DEBUG else settings.LOG_LEVEL.upper())
        logger.setLevel(getattr(logging, log_level, logging.INFO))

        logger.propagate = False

        if hasattr(logger, "_subscription_mirror_configured"):
            return _ContextualLogger(logger, prefix, dimensions)

        logger.handlers.clear()

        stream_handler = logging.StreamHandler(sys.stdout)

        if settings.LOCAL_DEVELOPMENT:
            formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        else:
            formatter = JSONFormatter()

        stream_handler.setFormatter(formatter)
        logger.addHandler(stream_handler)

        logger._subscription_mirror_configured = True

        return _ContextualLogger(logger, prefix, dimensions)

    @staticmethod
    def for_instance(contextual_logger: _ContextualLogger, debug: bool) -> _ContextualLogger:
        """Logger for one engine instance, honouring its sync config `debug` flag.

        Debug instances log through a child `<name>.debug` logger fixed at DEBUG, so the
        shared module logger keeps its level and other instances are unaffected.
        """
        if not debug:
            return contextual_logger
        debug_logger = LoggerConfigurator.configure_logger(
            f"{contextual_logger.logger.name}.debug", level="DEBUG"
        )
        return _ContextualLogger(
            debug_logger.logger, contextual_logger.prefix, contextual_logger.dimensions
        )


# Default logger instance
logger = LoggerConfigurator.configure_logger(__name__)
