import asyncio
import inspect
import logging
from datetime import datetime, timezone
from typing import Dict, Optional

import structlog


class JohnWickLogger:
    """
    structlog-backed logger writing coloured lines to the console and JSON lines
    to a file. Instances sharing a name share their underlying loggers.
    """

    _logger_cache: Dict[str, "JohnWickLogger"] = {}

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[1;31m",
    }
    RESET_COLOR = "\033[0m"

    def __init__(
        self,
        name: str = "order_service",
        log_file: str = "order_service.log",
        level: str = "INFO",
        context: Optional[dict] = None,
    ):
        self.name = name
        self.context = context or {}

        cached = self._logger_cache.get(name)
        if cached is not None:
            self.console_logger = cached.console_logger.bind(**self.context)
            self.file_logger = cached.file_logger.bind(**self.context)
            return

        def add_caller_stack(logger, method_name, event_dict):
            frame = inspect.currentframe()
            while frame:
                module_name = frame.f_globals.get("__name__")
                if (
                    module_name
                    and not module_name.startswith("structlog")
                    and not module_name.endswith("john_wick_logger")
                ):
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
            level = event_dict.get("level", method_name).upper()
            msg = event_dict.get("event", "")

            # caller info only for WARNING and above
            caller = ""
            if level in ("WARNING", "ERROR", "CRITICAL"):
                module = event_dict.get("module", "")
                func = event_dict.get("function", "")
                if module and func:
                    caller = f" {module}.{func}:{event_dict.get('lineno', '')}"

            extra = event_dict.get("extra")
            details = f" {extra}" if extra else ""
            color = self.LEVEL_COLORS.get(level, "")
            return f"{color}{ts} [{name}] {level}: {msg}{details}{caller}{self.RESET_COLOR}"

        log_level = getattr(logging, level.upper(), logging.INFO)

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
                structlog.processors.JSONRenderer(),
            ],
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        ).bind(logger=name, **self.context)

        self._logger_cache[name] = self

    def bind(self, **context) -> "JohnWickLogger":
        """Return a logger for the same name carrying extra bound context."""
        return JohnWickLogger(self.name, context={**self.context, **context})

    def debug(self, msg: str, **extra):
        self.console_logger.debug(msg, **extra)
        self.file_logger.debug(msg, **extra)

    def info(self, msg: str, **extra):
        self.console_logger.info(msg, **extra)
        self.file_logger.info(msg, **extra)

    def warning(self, msg: str, **extra):
        self.console_logger.warning(msg, **extra)
        self.file_logger.warning(msg, **extra)

    def error(self, msg: str, **extra):
        self.console_logger.error(msg, **extra)
        self.file_logger.error(msg, **extra)

    def critical(self, msg: str, **extra):
        self.console_logger.critical(msg, **extra)
        self.file_logger.critical(msg, **extra)

    def exception(self, msg: str, **extra):
        self.console_logger.exception(msg, **extra)
        self.file_logger.exception(msg, **extra)

    async def log_async(self, level: str, msg: str, **extra):
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, lambda: getattr(self, level.lower())(msg, **extra))
