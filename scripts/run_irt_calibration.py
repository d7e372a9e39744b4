"""
Cron job: batch IRT recalibration over a store snapshot.

Loads an item/attempt/profile snapshot (JSON), recalibrates every active
item with enough recorded attempts on each scale, and writes the updated
snapshot back (to --output, or in place).

Usage:
    python scripts/run_irt_calibration.py SNAPSHOT.json
        [--scale-id SCALE] [--min-attempts N] [--output OUT.json]

Exit codes:
    0 - Success (including scales where no item qualified)
    2 - Calibration or snapshot error
    3 - Configuration/import error
"""

import argparse
import json
import logging
import secrets
import sys
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger("irt_calibration_cron")


def _capture_sentry(error):
    """Capture an exception to Sentry if configured."""
    try:
        import sentry_sdk

        sentry_sdk.capture_exception(error)
    except Exception:
        pass  # Sentry not configured or import failed


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Recalibrate 3PL item parameters from a store snapshot."
    )
    parser.add_argument("snapshot", type=Path, help="Path to the JSON snapshot")
    parser.add_argument(
        "--scale-id",
        default=None,
        help="Only calibrate this scale (default: every scale in the snapshot)",
    )
    parser.add_argument(
        "--min-attempts",
        type=int,
        default=None,
        help="Minimum recorded attempts per item (default: IRT_MIN_ATTEMPTS_FOR_CALIBRATION)",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Where to write the updated snapshot (default: overwrite SNAPSHOT)",
    )
    return parser.parse_args(argv)


def _load_store(path: Path):
    """Read and validate a snapshot file.

    Raises:
        CalibrationError: If the file cannot be read or is not a valid snapshot.
    """
    from irt_engine.core.cat.calibration import CalibrationError
    from irt_engine.core.cat.memory_store import InMemoryIRTStore

    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        return InMemoryIRTStore.from_snapshot(data)
    except Exception as exc:
        raise CalibrationError(
            "Failed to load snapshot",
            original_error=exc,
            context={"path": str(path)},
        ) from exc


def _write_store(store, path: Path) -> None:
    from irt_engine.core.cat.calibration import CalibrationError

    try:
        with path.open("w", encoding="utf-8") as f:
            json.dump(store.to_snapshot(), f, indent=2)
    except OSError as exc:
        raise CalibrationError(
            "Failed to write snapshot",
            original_error=exc,
            context={"path": str(path)},
        ) from exc


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)

    # Defer imports so config/import failures produce exit code 3
    try:
        from irt_engine.core.cat.calibration import CalibrationError
        from irt_engine.core.cat.service import IRTService
        from irt_engine.core.config import settings
        from irt_engine.core.datetime_utils import utc_now
        from irt_engine.core.logging_config import (
            calibration_job_id_context,
            setup_logging,
        )

        setup_logging(settings)

        # Initialize Sentry if configured
        try:
            if settings.SENTRY_DSN:
                import sentry_sdk

                sentry_sdk.init(
                    dsn=settings.SENTRY_DSN,
                    environment=settings.ENV,
                    release=settings.APP_VERSION,
                    send_default_pii=False,
                )
        except Exception as exc:
            logger.warning("Sentry initialization failed (non-fatal): %s", exc)
    except Exception as exc:
        logger.error("Failed to import required modules: %s", exc)
        return 3

    if args.min_attempts is not None and args.min_attempts < 1:
        logger.error("--min-attempts must be >= 1, got %d", args.min_attempts)
        return 3

    started_at = utc_now()
    job_id = f"irt_cron_{started_at.strftime('%Y%m%d%H%M%S')}_{secrets.token_hex(4)}"
    token = calibration_job_id_context.set(job_id)

    try:
        store = _load_store(args.snapshot)
        service = IRTService.from_settings(store, store, store, settings)

        if args.scale_id is not None:
            scale_ids = [args.scale_id]
        else:
            scale_ids = store.scale_ids()

        logger.info(
            "Running IRT calibration (job_id=%s) for %d scale(s)",
            job_id,
            len(scale_ids),
        )

        totals = {"calibrated": 0, "skipped": 0, "failed": 0}
        per_scale = {}
        for scale_id in scale_ids:
            summary = service.calibrate_scale(scale_id, min_attempts=args.min_attempts)
            per_scale[scale_id] = dict(summary)
            for key in totals:
                totals[key] += summary[key]

        _write_store(store, args.output or args.snapshot)

    except CalibrationError as exc:
        logger.error("Calibration failed: %s", exc)
        _capture_sentry(exc)
        return 2
    except Exception as exc:
        logger.error("Unexpected error during IRT calibration cron: %s", exc)
        _capture_sentry(exc)
        return 2
    finally:
        calibration_job_id_context.reset(token)

    completed_at = utc_now()
    duration = (completed_at - started_at).total_seconds()

    logger.info(
        "Calibration complete: %d calibrated, %d skipped, %d failed, duration=%.1fs",
        totals["calibrated"],
        totals["skipped"],
        totals["failed"],
        duration,
    )

    # Emit heartbeat JSON for log monitoring
    heartbeat = {
        "type": "HEARTBEAT",
        "service": "irt_calibration_cron",
        "status": "completed",
        "job_id": job_id,
        "calibrated": totals["calibrated"],
        "skipped": totals["skipped"],
        "failed": totals["failed"],
        "scales": per_scale,
        "duration_seconds": round(duration, 1),
        "completed_at": completed_at.isoformat(),
    }
    print(json.dumps(heartbeat), flush=True)

    return 0


if __name__ == "__main__":
    sys.exit(main())
