import json
import logging
import os
import sys

DEFAULT_MCP_LOG_FILE = "/tmp/catalog-mirror.log"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


class JsonFormatter(logging.Formatter):
    """One JSON object per record: ts, level, logger, msg (and exc)."""

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


def _formatter(debug_format: str, with_name: bool) -> logging.Formatter:
    if debug_format == "json":
        return JsonFormatter(datefmt=_DATEFMT)
    name = " %(name)s" if with_name else ""
    return logging.Formatter(
        f"[%(asctime)s] [%(levelname)s]{name} %(message)s",
        datefmt=_DATEFMT,
    )


def resolve_level(mode: str, debug: bool) -> int:
    """Pick the log level: debug flag > CATALOG_LOG_LEVEL/LOG_LEVEL > mode default."""
    if debug:
        return logging.DEBUG
    default_level = "WARNING" if mode == "mcp" else "INFO"
    env_level = (
        os.getenv("CATALOG_LOG_LEVEL")
        or os.getenv("LOG_LEVEL")
        or default_level
    ).upper()
    return getattr(logging, env_level, logging.INFO)


def setup_logging(
    mode: str = "cli",
    debug: bool = False,
    log_file: str | None = None,
    debug_format: str = "text",
) -> None:
    """
    Configure logging based on execution mode.

    Args:
        mode: "mcp" logs to a file only (stdout carries the protocol),
            "cli" logs to stderr and optionally to *log_file* too.
        debug: Force DEBUG level.
        log_file: Log file path. In mcp mode falls back to the LOG_FILE
            env var, then /tmp/catalog-mirror.log.
        debug_format: "text" (default) or "json".
    """
    log_level = resolve_level(mode, debug)

    if mode == "mcp":
        logging.basicConfig(
            level=log_level,
            format="[%(asctime)s] [%(levelname)s] %(name)s %(message)s",
            datefmt=_DATEFMT,
            filename=log_file
            or os.getenv("LOG_FILE", DEFAULT_MCP_LOG_FILE),
            filemode="a",
        )
    else:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(_formatter(debug_format, False))
        handlers: list[logging.Handler] = [stderr_handler]

        if log_file:
            file_handler = logging.FileHandler(log_file, mode="a")
            file_handler.setFormatter(_formatter(debug_format, True))
            handlers.append(file_handler)

        logging.basicConfig(level=log_level, handlers=handlers)

    # HTTP stack is noisy below DEBUG
    if log_level != logging.DEBUG:
        logging.getLogger("urllib3").setLevel(logging.WARNING)
        logging.getLogger("requests").setLevel(logging.WARNING)
