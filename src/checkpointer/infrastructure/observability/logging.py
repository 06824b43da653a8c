"""Logging setup for the sync job: JSON or compact text output, tagged with a run id."""

import contextvars
import logging
import sys
import traceback
import uuid
from pathlib import Path
from typing import Any

from pythonjsonlogger import jsonlogger

# Hey future me, every record of one `checkpointer-sync` invocation carries the same run id,
# so one run can be grepped out of a week of cron output. contextvars follows asyncio tasks;
# the "" default covers records emitted before the CLI binds an id.
_run_id: contextvars.ContextVar[str] = contextvars.ContextVar("sync_run_id", default="")

# These log every request/statement at INFO or DEBUG and would drown the page progress lines
NOISY_LOGGERS = ("httpx", "httpcore", "asyncio", "aiosqlite", "sqlalchemy.engine")


def get_run_id() -> str:
    """Run id bound to the current context ("" if none)."""
    return _run_id.get()


def set_run_id(run_id: str | None = None) -> str:
    """Bind a run id to the current context, generating a UUID4 if none is given."""
    run_id = run_id or str(uuid.uuid4())
    _run_id.set(run_id)
    return run_id


class RunIdFilter(logging.Filter):
    """Stamps ``record.run_id`` so formatters can print it."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = get_run_id()
        return True


class CompactExceptionFormatter(logging.Formatter):
    """Text formatter that prints exception chains root-cause first, our frames only.

    ERROR │ checkpointer.cli:60 │ Sync failed: full catalog sync failed: IGDB games failed: 503
    ╰─► ExternalServiceError: IGDB games failed: 503
        File "igdb_client.py", line 180, in _do_request
          self._raise_for_status(response, f"IGDB {endpoint}")
    ╰─► SyncError: full catalog sync failed: IGDB games failed: 503
    """

    def formatException(self, ei: Any) -> str:
        exc = ei[1]
        chain: list[BaseException] = []
        while exc is not None and exc not in chain:
            chain.append(exc)
            exc = exc.__cause__ or exc.__context__

        lines: list[str] = []
        for link in reversed(chain):
            lines.append(f"╰─► {type(link).__name__}: {link}")
            for frame in traceback.extract_tb(link.__traceback__):
                if "checkpointer" not in frame.filename or "site-packages" in frame.filename:
                    continue
                lines.append(
                    f'    File "{Path(frame.filename).name}", line {frame.lineno}, in {frame.name}'
                )
                if frame.line:
                    lines.append(f"      {frame.line.strip()}")
        return "\n".join(lines)


class SyncJsonFormatter(jsonlogger.JsonFormatter):  # type: ignore[name-defined,misc]
    """One JSON object per record, for log shipping from cron/containers."""

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["ts"] = self.formatTime(record, self.datefmt)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["where"] = f"{record.module}:{record.funcName}:{record.lineno}"
        run_id = getattr(record, "run_id", "")
        if run_id:
            log_record["run_id"] = run_id
        if record.exc_info:
            log_record["exc_info"] = self.formatException(record.exc_info)


def _build_formatter(json_format: bool) -> logging.Formatter:
    if json_format:
        return SyncJsonFormatter("%(ts)s %(level)s %(logger)s %(message)s", datefmt="%Y-%m-%dT%H:%M:%S")
    return CompactExceptionFormatter(
        fmt="%(asctime)s │ %(levelname)-7s │ %(name)s:%(lineno)d │ %(message)s",
        datefmt="%H:%M:%S",
    )


# Listen future me, the CLI calls this once at startup. It REPLACES the root handlers, so a
# second call (tests) is fine but drops anything else attached to the root logger.
def configure_logging(
    log_level: str = "INFO",
    json_format: bool = False,
    app_name: str = "checkpointer",
) -> None:
    """Install a single stdout handler on the root logger.

    Args:
        log_level: Level name (DEBUG, INFO, WARNING, ERROR, CRITICAL); unknown names mean INFO
        json_format: Emit JSON objects instead of the compact text layout
        app_name: Included in the "logging configured" record
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(RunIdFilter())
    handler.setFormatter(_build_formatter(json_format))

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(
        "Logging configured",
        extra={"app_name": app_name, "log_level": log_level, "json_format": json_format},
    )
