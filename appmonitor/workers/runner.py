from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Any, Awaitable, Callable, Sequence

from appmonitor.alerts.notifier import Notifier
from appmonitor.core.config import ApplicationConfig, ConfigError, MonitorConfig, load_config, settings
from appmonitor.services.checker import Checker, Healthy, CheckOutcome, TransportFailure, UnexpectedStatus
from appmonitor.services.tracker import StateTracker

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config.json"

EXIT_CONFIG_ERROR = 1
EXIT_INTERRUPTED = 130


class MonitoringWorker:
    def __init__(
        self,
        config: MonitorConfig,
        checker: Checker | None = None,
        tracker: StateTracker | None = None,
        sleep_func: Callable[[float], Awaitable[Any]] | None = None,
    ) -> None:
        self._config = config
        self._checker = checker or Checker()
        self._tracker = tracker or StateTracker(Notifier.from_config(config))
        self._sleep = sleep_func or asyncio.sleep

    @property
    def tracker(self) -> StateTracker:
        return self._tracker

    async def run_forever(self) -> None:
        """Run one round now, then one per interval until cancelled.

        A round always finishes before the next one starts. Ticks that fall
        while a round is still running collapse into a single immediate round.
        """
        interval = self._config.interval_seconds
        loop = asyncio.get_running_loop()
        next_tick = loop.time() + interval
        try:
            await self.run_round()
            while True:
                delay = next_tick - loop.time()
                if delay > 0:
                    await self._sleep(delay)
                else:
                    next_tick += (-delay // interval) * interval
                next_tick += interval
                await self.run_round()
        finally:
            await self._checker.aclose()

    async def run_round(self) -> dict[str, CheckOutcome]:
        targets = self._config.enabled_applications
        logger.info("Running health checks for %d applications", len(targets))

        results = await asyncio.gather(*(self._run_job(target) for target in targets))
        return {target.name: outcome for target, outcome in zip(targets, results) if outcome is not None}

    async def _run_job(self, target: ApplicationConfig) -> CheckOutcome | None:
        try:
            outcome = await self._checker.check(target)
            _log_outcome(target, outcome)
            await self._tracker.observe(target, outcome)
            return outcome
        except Exception:  # pragma: no cover - logging catch-all
            logger.exception("job failed", extra={"application": target.name})
            return None


def _log_outcome(target: ApplicationConfig, outcome: CheckOutcome) -> None:
    if isinstance(outcome, Healthy):
        logger.info("OK - %s is healthy (status: %d)", target.name, outcome.status_code)
    elif isinstance(outcome, UnexpectedStatus):
        logger.warning(
            "%s returned unexpected status code: %d (expected: %d)",
            target.name,
            outcome.status_code,
            outcome.expected_code,
        )
    elif isinstance(outcome, TransportFailure):
        logger.error("Failed to connect to %s (%s): %s", target.name, target.url, outcome.error)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    for noisy in ("httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def log_startup_summary(config: MonitorConfig) -> None:
    logger.info("Starting app monitor with %d enabled applications", len(config.enabled_applications))
    logger.info("Check interval: %s", config.check_interval)
    if config.email.enabled:
        logger.info("Alert email: %s", config.email.to_email)
    else:
        logger.info("Email notifications: disabled")
    if config.webhook.active:
        logger.info("Webhook notifications: enabled (%s)", config.webhook.url)
    else:
        logger.info("Webhook notifications: disabled")


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="appmonitor",
        description="Periodically check HTTP applications and notify on outages and recoveries.",
    )
    parser.add_argument(
        "config",
        nargs="?",
        default=DEFAULT_CONFIG_PATH,
        help=f"Path to the JSON configuration file (default: {DEFAULT_CONFIG_PATH})",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    args = create_parser().parse_args(argv)
    configure_logging(settings.log_level)

    try:
        config = load_config(args.config)
    except ConfigError as exc:
        logger.critical("Failed to load config: %s", exc)
        sys.exit(EXIT_CONFIG_ERROR)

    log_startup_summary(config)
    worker = MonitoringWorker(config)
    try:
        asyncio.run(worker.run_forever())
    except KeyboardInterrupt:
        logger.info("Interrupted, stopping monitor")
        sys.exit(EXIT_INTERRUPTED)


if __name__ == "__main__":
    main()
