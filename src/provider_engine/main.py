"""Headless entry point: reconcile every desired config in SPECS_DIR once.

Each resource is reconciled independently; a failure is logged and the
remaining resources still run. The exit code reports the worst outcome.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from datetime import UTC
from pathlib import Path

from .config import Config, ConfigurationError, LogFormat
from .controller_client import ControllerClient
from .differ import FieldDecodeError
from .models import BaseSpec
from .reconciler import PartialReconciliationError, ReconcileResult, Reconciler
from .remote import RemoteOperationError, RemoteOperations
from .spec_loader import SpecLoadError, load_specs
from .tokens import MalformedTokenError
from .validator import ValidationError

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_VALIDATION = 2


def setup_logging(log_format: LogFormat = LogFormat.JSON, level: int = logging.INFO) -> None:
    """Configure structured logging with JSON output for production."""
    import json
    from datetime import datetime

    class JsonFormatter(logging.Formatter):
        """Format logs as JSON for structured logging."""

        def format(self, record: logging.LogRecord) -> str:
            log_data = {
                "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
                "level": record.levelname,
                "message": record.getMessage(),
                "logger": record.name,
            }

            for key, value in record.__dict__.items():
                if key not in _RESERVED_RECORD_ATTRS:
                    log_data[key] = value

            if record.exc_info:
                log_data["exception"] = self.formatException(record.exc_info)

            return json.dumps(log_data, default=str)

    handler = logging.StreamHandler(sys.stderr)
    if log_format is LogFormat.JSON:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))

    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    # Reduce noise from the HTTP stack
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


_RESERVED_RECORD_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "taskName",
        "message",
    }
)


async def reconcile_specs(
    remote: RemoteOperations,
    specs: list[tuple[Path, BaseSpec]],
    *,
    dry_run: bool = False,
) -> tuple[list[ReconcileResult], int]:
    """Reconcile each desired config in order.

    Returns:
        Results of the passes that completed and the exit code.
    """
    logger = logging.getLogger(__name__)
    reconciler = Reconciler(remote, dry_run=dry_run)
    results: list[ReconcileResult] = []
    exit_code = EXIT_OK

    for path, spec in specs:
        extra = {"kind": spec.kind, "key": spec.resource_key, "path": str(path)}
        try:
            results.append(await reconciler.reconcile(spec))
        except ValidationError as e:
            logger.error(
                "Configuration rejected", extra={**extra, "rule": e.violation.rule, "error": str(e)}
            )
            exit_code = max(exit_code, EXIT_VALIDATION)
        except PartialReconciliationError as e:
            logger.error(
                "Partial reconciliation",
                extra={
                    **extra,
                    "committed": [op.name for op in e.committed],
                    "failed": e.failed.name,
                    "ha_state": e.ha_state.value if e.ha_state else None,
                    "error": str(e.cause),
                },
            )
            exit_code = max(exit_code, EXIT_ERROR)
        except (RemoteOperationError, MalformedTokenError, FieldDecodeError) as e:
            logger.error("Reconciliation failed", extra={**extra, "error": str(e)})
            exit_code = max(exit_code, EXIT_ERROR)

    return results, exit_code


async def main() -> int:
    """Run one reconciliation pass over SPECS_DIR.

    Returns:
        Exit code (0 success, 1 error, 2 configuration rejected).
    """
    try:
        config = Config.from_env()
    except ConfigurationError as e:
        setup_logging()
        logging.getLogger(__name__).error("Configuration error", extra={"error": str(e)})
        return EXIT_ERROR

    setup_logging(config.log_format)
    logger = logging.getLogger(__name__)
    logger.info(
        "Starting reconciliation",
        extra={
            "controller": config.controller_ip,
            "specs_dir": str(config.specs_dir),
            "dry_run": config.dry_run,
        },
    )

    try:
        specs = load_specs(config.specs_dir)
    except SpecLoadError as e:
        logger.error("Spec loading failed", extra={"error": str(e)})
        return EXIT_VALIDATION

    try:
        async with ControllerClient.from_config(config) as client:
            _, exit_code = await reconcile_specs(client, specs, dry_run=config.dry_run)
    except Exception as e:
        logger.exception("Unhandled exception", extra={"error": str(e)})
        return EXIT_ERROR

    return exit_code


def run() -> None:
    """Entry point for headless runs."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
