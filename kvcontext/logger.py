# ─── Hierarchical Call Stack Tracking ─────────────────────────────────────────
import contextvars
import sys
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from types import SimpleNamespace

from loguru import logger as _loguru

# Names of the workflow steps currently executing, outermost first
_call_stack = contextvars.ContextVar("_call_stack", default=[])


@contextmanager
def log_func(name: str):
    """
    Tags every record logged inside the block with `name`, nested under any enclosing names.
    """
    stack = _call_stack.get()
    token = _call_stack.set(stack + [name])
    try:
        yield
    finally:
        _call_stack.reset(token)


def _enrich_record(record):
    """Loguru patcher: extra["func"] = e.g. "VaultWorkflow.step5"."""
    stack = _call_stack.get()
    record["extra"]["func"] = ".".join(stack) if stack else ""


# Applied globally so records carry extra['func'] whether or not init_logger ran.
_loguru.configure(patcher=_enrich_record)


# ─── Logger Utility ───────────────────────────────────────────────────────────

class Logger:
    """
    Run-scoped loguru setup for kvsample: one console sink and one file per run.

    Records carry the workflow step that emitted them (see `log_func`), so a
    failed run's file shows which numbered step broke and what cleanup did.
    """

    _configured = False
    _run_id = None
    _log_path = None
    _handler_ids = SimpleNamespace(file=None, console=None)

    FORMAT = (
        "<green>{time:HH:mm:ss.SSS}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{extra[func]}</cyan> | "
        "{message}"
    )

    @staticmethod
    def init_logger(
            log_dir: Path = Path("logs"),
            label: str = None,
            serialize: bool = False,
            pretty_console: bool = True,
            level: str = "INFO",
    ):
        """
        Configures the console and run-file sinks. Only the first call has any effect.

        Args:
            log_dir (Path): Directory for `<timestamp>__<label or run id>.log`.
            label (str): File-name suffix; a fresh run id is used when omitted.
            serialize (bool): Write JSON records to the file instead of text.
            pretty_console (bool): Add the colourised stderr sink.
            level (str): Minimum level name for both sinks.

        Raises:
            ValueError: If `level` is not a loguru level name. Nothing is configured then.
        """
        if Logger._configured:
            return _loguru

        _loguru.level(level)

        run_id = str(uuid.uuid4())
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d_%H-%M-%S")
        log_file = log_dir / f"{timestamp}__{label or run_id}.log"

        _loguru.remove()
        if pretty_console:
            Logger._handler_ids.console = _loguru.add(sys.stderr, level=level, colorize=True, format=Logger.FORMAT)
        Logger._handler_ids.file = _loguru.add(str(log_file), level=level, serialize=serialize, format=Logger.FORMAT)

        Logger._run_id = run_id
        Logger._log_path = log_file
        Logger._configured = True
        _loguru.debug("[Logger Init] run={} -> {}", run_id, log_file)
        return _loguru

    @staticmethod
    def log_path():
        """File the current run logs to, or None before init_logger."""
        return Logger._log_path

    @staticmethod
    def reset():
        for handler_id in (Logger._handler_ids.console, Logger._handler_ids.file):
            if handler_id is not None:
                _loguru.remove(handler_id)
        Logger._configured = False
        Logger._run_id = None
        Logger._log_path = None
        Logger._handler_ids = SimpleNamespace(file=None, console=None)
