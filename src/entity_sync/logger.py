import json
import logging
import os
import sys

DEFAULT_MCP_LOG_FILE = "/tmp/entity-sync-mcp.log"

_DATEFMT = "%Y-%m-%d %H:%M:%S"
_TEXT_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"
_TEXT_FORMAT_NAMED = "[%(asctime)s] [%(levelname)s] %(name)s %(message)s"

_NOISY_LOGGERS = ("urllib3", "httpx", "httpcore")


class JsonFormatter(logging.Formatter):
    """Format each record as a single JSON object (ts, level, logger, msg, exc)."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _resolve_level(mode: str, debug: bool, level: str | None) -> int:
    if debug:
        return logging.DEBUG
    fallback = level or ("WARNING" if mode == "mcp" else "INFO")
    name = os.getenv("LOG_LEVEL", fallback).upper()
    return getattr(logging, name, logging.INFO)


def _cli_handlers(
    log_file: str | None, debug_format: str
) -> list[logging.Handler]:
    def formatter(fmt: str) -> logging.Formatter:
        if debug_format == "json":
            return JsonFormatter(datefmt=_DATEFMT)
        return logging.Formatter(fmt, datefmt=_DATEFMT)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter(_TEXT_FORMAT))
    handlers: list[logging.Handler] = [console]

    if log_file:
        # The file gets logger names, stderr stays short
        file_handler = logging.FileHandler(log_file, mode="a")
        file_handler.setFormatter(formatter(_TEXT_FORMAT_NAMED))
        handlers.append(file_handler)
    return handlers


def setup_logging(
    mode: str = "cli",
    debug: bool = False,
    log_file: str | None = None,
    debug_format: str = "text",
    level: str | None = None,
) -> None:
    """
    Configure the root logger for the CLI or for the MCP server.

    Args:
        mode: "cli" writes to stderr, plus *log_file* when given. "mcp"
            writes to a file only; stdout belongs to the JSON-RPC stream.
        debug: Log at DEBUG whatever LOG_LEVEL or the config say.
        log_file: Where to write. In MCP mode the LOG_FILE env var and
            then /tmp/entity-sync-mcp.log are used when it is None.
        debug_format: "text" or "json" lines (CLI mode).
        level: ``logging.level`` from the config file.

    Environment variables:
        LOG_LEVEL: Overrides *level*. Without either, MCP mode logs at
                   WARNING and CLI mode at INFO.
        LOG_FILE: MCP log file path.
    """
    log_level = _resolve_level(mode, debug, level)

    if mode == "mcp":
        logging.basicConfig(
            level=log_level,
            format=_TEXT_FORMAT,
            datefmt=_DATEFMT,
            filename=log_file
            or os.getenv("LOG_FILE", DEFAULT_MCP_LOG_FILE),
            filemode="a",
        )
    else:
        logging.basicConfig(
            level=log_level, handlers=_cli_handlers(log_file, debug_format)
        )

    if log_level != logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
