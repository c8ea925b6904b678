"""Entry point for the court booking agent."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Optional

import structlog
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from .config import BookingConfig, Settings, apply_overrides, load_booking_config
from .errors import ConfigurationError, NetworkError, NoEligibleSlotError
from .models import BookingOutcome
from .run_log import RunLogger, StructlogRunLogger
from .workflow import run

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIGURATION = 2
EXIT_NO_SLOT = 3


def configure_logging(level: int = logging.INFO) -> None:
    """Configure structlog + stdlib logging."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        stream=sys.stdout,
    )
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.EventRenamer("event"),
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


LOGGER = structlog.get_logger(__name__)


async def run_with_retries(
    config: BookingConfig,
    log: RunLogger,
    *,
    attempts: int = 1,
    max_wait_seconds: float = 8.0,
) -> BookingOutcome:
    """Repeat whole runs on network failures only."""
    async for attempt in AsyncRetrying(
        retry=retry_if_exception_type(NetworkError),
        wait=wait_exponential(multiplier=1, max=max_wait_seconds),
        stop=stop_after_attempt(max(1, attempts)),
        reraise=True,
    ):
        with attempt:
            if attempt.retry_state.attempt_number > 1:
                log("warning", f"Retrying the booking run (attempt {attempt.retry_state.attempt_number}/{attempts}).")
            return await run(config, log)
    raise RuntimeError("Booking run did not execute")  # pragma: no cover - tenacity returns or reraises


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """CLI argument parsing."""
    parser = argparse.ArgumentParser(description="Book a court slot according to ranked hour and court preferences.")
    parser.add_argument("--config", dest="config_file", help="Path to the JSON booking configuration.")
    parser.add_argument("--mock", action="store_true", help="Score the configured mock slots without network access.")
    parser.add_argument("--test-mode", action="store_true", help="Run every step but skip the final submission.")
    parser.add_argument("--date", dest="reservation_date", help="Explicit reservation date (YYYY-MM-DD).")
    parser.add_argument("--advance", type=int, help="Book this many days after today.")
    parser.add_argument("--retries", type=int, help="Total attempts on network failure (default from environment).")
    return parser.parse_args(argv)


def cli(argv: Optional[list[str]] = None) -> int:
    """Console script entrypoint."""
    args = parse_args(argv)

    try:
        settings = Settings()
    except Exception as exc:  # pragma: no cover - startup validation
        configure_logging()
        LOGGER.exception("settings.error", error=str(exc))
        return EXIT_CONFIGURATION

    configure_logging(getattr(logging, settings.log_level.upper(), logging.INFO))
    log = StructlogRunLogger()

    config_file = args.config_file or settings.config_file
    try:
        if not config_file:
            raise ConfigurationError("No configuration file given (use --config or COURT_BOOKING_CONFIG_FILE)")
        config = load_booking_config(config_file)
        config = apply_overrides(
            config,
            mode="mock" if args.mock else None,
            test_mode=True if args.test_mode else None,
            reservation_date=args.reservation_date,
            booking_advance=args.advance,
        )
        attempts = args.retries if args.retries is not None else settings.retry_attempts
        outcome = asyncio.run(
            run_with_retries(config, log, attempts=attempts, max_wait_seconds=settings.retry_max_wait_seconds)
        )
    except ConfigurationError as exc:
        log("error", str(exc))
        return EXIT_CONFIGURATION
    except NoEligibleSlotError as exc:
        log("error", str(exc))
        return EXIT_NO_SLOT
    except NetworkError as exc:
        log("error", str(exc), {"operation": exc.operation})
        return EXIT_FAILURE
    except Exception as exc:  # pragma: no cover - top level
        LOGGER.exception("agent.failed", error=str(exc))
        return EXIT_FAILURE

    LOGGER.info(
        "agent.finished",
        target_date=outcome.target.iso,
        hour=outcome.selection.slot.hour,
        court_id=outcome.selection.slot.court_id,
        submitted=outcome.submitted,
    )
    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(cli())
