import inspect
import logging
from datetime import datetime, timezone
from typing import Dict, Optional

import structlog


class JohnWickLogger:
    """
    structlog-backed logger writing colored lines to the console and JSON
    lines to a file.

    Instances are cached per name so every component asking for the same
    name shares handlers. ``extra`` dicts are rendered as a nested ``extra``
    key in the JSON output.
    """

    _logger_cache: Dict[str, "JohnWickLogger"] = {}

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",     # cyan
        "INFO": "\033[32m",      # green
        "WARNING": "\033[33m",   # yellow
        "ERROR": "\033[31m",     # red
        "CRITICAL": "\033[1;31m" # bold red
    }
    RESET_COLOR = "\033[0m"

    def __init__(
        self,
        name: str = "delivery",
        log_file: Optional[str] = "delivery.log",
        level: str = "INFO",
        context: Optional[dict] = None,
    ):
        self.name = name
        self.context = context or {}

        cached = self._logger_cache.get(name)
        if cached is not None:
            self.console_logger = cached.console_logger.bind(**self.context)
            self.file_logger = (
                cached.file_logger.bind(**self.context) if cached.file_logger is not None else None
            )
            return

        log_level = getattr(logging, level.upper(), logging.INFO)

        def add_caller_stack(logger, method_name, event_dict):
            frame = inspect.currentframe()
            while frame:
                module_name = frame.f_globals.get("__name__")
                if module_name and not module_name.startswith("structlog") and not module_name.endswith("john_wick_logger"):
                    event_dict["module"] = module_name
                    event_dict["function"] = frame.f_code.co_name
                    event_dict["lineno"] = frame.f_lineno
                    owner = frame.f_locals.get("self")
                    if owner is not None:
                        event_dict["class"] = owner.__class__.__name__
                    break
                frame = frame.f_back
            return event_dict

        def console_processor(logger, method_name, event_dict):
            ts = event_dict.get("timestamp") or datetime.now(timezone.utc).isoformat()
            lvl = event_dict.get("level", method_name).upper()
            logger_name = event_dict.get("logger", self.name)
            msg = event_dict.get("event", "")
            extra = event_dict.get("extra")

            # Caller info only for WARNING and above
            caller = ""
            if lvl in ("WARNING", "ERROR", "CRITICAL"):
                module = event_dict.get("module", "")
                func = event_dict.get("function", "")
                lineno = event_dict.get("lineno", "")
                caller = f" {module}.{func}:{lineno}" if module and func else ""

            suffix = f" {extra}" if extra else ""
            color = self.LEVEL_COLORS.get(lvl, "")
            return f"{color}{ts} [{logger_name}] {lvl}: {msg}{suffix}{caller}{self.RESET_COLOR}"

        console_logger = logging.getLogger(f"{name}_console")
        console_logger.setLevel(log_level)
        console_logger.propagate = False
        if not console_logger.handlers:
            ch = logging.StreamHandler()
            ch.setFormatter(logging.Formatter("%(message)s"))
            console_logger.addHandler(ch)

        self.console_logger = structlog.wrap_logger(
            console_logger,
            processors=[
                structlog.processors.TimeStamper(fmt="ISO"),
                structlog.stdlib.add_log_level,
                add_caller_stack,
                console_processor,
            ],
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        ).bind(logger=name, **self.context)

        self.file_logger = None
        if log_file:
            file_logger = logging.getLogger(f"{name}_file")
            file_logger.setLevel(log_level)
            file_logger.propagate = False
            if not any(isinstance(h, logging.FileHandler) for h in file_logger.handlers):
                fh = logging.FileHandler(log_file, encoding="utf-8")
                fh.setFormatter(logging.Formatter("%(message)s"))
                file_logger.addHandler(fh)

            self.file_logger = structlog.wrap_logger(
                file_logger,
                processors=[
                    structlog.processors.TimeStamper(fmt="ISO"),
                    structlog.stdlib.add_log_level,
                    structlog.processors.StackInfoRenderer(),
                    structlog.processors.format_exc_info,
                    add_caller_stack,
                    structlog.processors.UnicodeDecoder(),
                    structlog.processors.JSONRenderer(default=str),
                ],
                wrapper_class=structlog.stdlib.BoundLogger,
                cache_logger_on_first_use=True,
            ).bind(logger=name, **self.context)

        self._logger_cache[name] = self

    def bind(self, **context) -> "JohnWickLogger":
        """Return a logger sharing this one's handlers with extra bound context."""
        return JohnWickLogger(self.name, context={**self.context, **context})

    # ----------------------------
    # Logging methods
    # ----------------------------
    def _emit(self, level: str, msg: str, **extra):
        getattr(self.console_logger, level)(msg, **extra)
        if self.file_logger is not None:
            getattr(self.file_logger, level)(msg, **extra)

    def debug(self, msg: str, **extra):
        self._emit("debug", msg, **extra)

    def info(self, msg: str, **extra):
        self._emit("info", msg, **extra)

    def warning(self, msg: str, **extra):
        self._emit("warning", msg, **extra)

    def error(self, msg: str, **extra):
        self._emit("error", msg, **extra)

    def critical(self, msg: str, **extra):
        self._emit("critical", msg, **extra)

    def exception(self, msg: str, **extra):
        self._emit("exception", msg, **extra)

