"""Background scheduler for periodic speed tests."""

from __future__ import annotations

import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .config import AppConfig
from .exporter import CSVExporter
from .measurements.errors import MeasurementError
from .measurements.manager import MeasurementManager

LOGGER = logging.getLogger(__name__)

JOB_ID = "scheduled-speedtest"


class SchedulerService:
    def __init__(
        self,
        config: AppConfig,
        measurement_manager: MeasurementManager,
        exporter: CSVExporter,
    ) -> None:
        self.config = config
        self.measurements = measurement_manager
        self.exporter = exporter
        self.scheduler = BackgroundScheduler(timezone="UTC")
        self.started = False

    def start(self) -> None:
        if self.started:
            LOGGER.warning("Scheduler already started, ignoring duplicate start request")
            return

        if not self.config.scheduler.enabled:
            LOGGER.info("Scheduler is disabled in configuration; speed tests run on demand only")
            return

        interval = self.config.scheduler.interval_minutes
        self.scheduler.add_job(
            self._run_cycle,
            trigger=IntervalTrigger(minutes=interval),
            id=JOB_ID,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()
        self.started = True
        LOGGER.info("Scheduler started with interval %s minutes", interval)

    def shutdown(self) -> None:
        if self.started:
            self.scheduler.shutdown(wait=False)
            self.started = False

    def _run_cycle(self) -> None:
        LOGGER.info("Starting scheduled speed test")
        try:
            self.measurements.run_measurement()
        except MeasurementError as exc:
            # the next tick is the retry
            LOGGER.error("Scheduled speed test failed (%s): %s", exc.kind, exc)
            return
        self.exporter.write_snapshot()
