"""CSV export helpers for the speed test history."""

from __future__ import annotations

import csv
import io
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from .config import AppConfig
from .db import SpeedTestStore
from .measurements.models import MeasurementRecord

LOGGER = logging.getLogger(__name__)

HEADER = ["timestamp", "download_mbps", "upload_mbps", "ping_ms"]


class CSVExporter:
    def __init__(self, config: AppConfig, store: SpeedTestStore):
        self.config = config
        self.store = store

    def build_csv(self, start: Optional[datetime] = None, end: Optional[datetime] = None) -> io.StringIO:
        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(HEADER)

        for record in self.store.iter_records_ascending(start=start, end=end):
            writer.writerow(self._row_for_record(record))

        buffer.seek(0)
        return buffer

    @staticmethod
    def _row_for_record(record: MeasurementRecord) -> list:
        return [
            record.timestamp.isoformat(),
            record.download_mbps,
            record.upload_mbps,
            record.ping_ms,
        ]

    def write_snapshot(self) -> Path:
        buffer = self.build_csv()
        target = self.config.paths.data_dir / self.config.export.csv_name
        target.write_text(buffer.getvalue(), encoding="utf-8")
        LOGGER.debug("Wrote CSV snapshot to %s", target)
        return target
