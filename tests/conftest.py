from __future__ import annotations

import stat
from pathlib import Path
from typing import Callable, Optional, Union

import pytest

from speedlog.config import (
    AppConfig,
    ExportConfig,
    LoggingConfig,
    PathsConfig,
    SchedulerConfig,
    SpeedtestConfig,
    WebConfig,
)
from speedlog.db import SpeedTestStore, init_db
from speedlog.exporter import CSVExporter
from speedlog.measurements.manager import MeasurementManager

GOOD_OUTPUT = "Ping: 23.456 ms\nDownload: 85.67 Mbit/s\nUpload: 12.34 Mbit/s\n"


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    data_dir = tmp_path / "data"
    logs_dir = tmp_path / "logs"
    data_dir.mkdir()
    logs_dir.mkdir()
    return AppConfig(
        root_dir=tmp_path,
        paths=PathsConfig(data_dir=data_dir, logs_dir=logs_dir),
        speedtest=SpeedtestConfig(timeout_seconds=10),
        scheduler=SchedulerConfig(),
        web=WebConfig(),
        export=ExportConfig(),
        logging=LoggingConfig(),
    )


@pytest.fixture
def store(app_config: AppConfig) -> SpeedTestStore:
    return SpeedTestStore(init_db(app_config.paths.data_dir))


@pytest.fixture
def manager(app_config: AppConfig, store: SpeedTestStore) -> MeasurementManager:
    return MeasurementManager(app_config, store)


@pytest.fixture
def exporter(app_config: AppConfig, store: SpeedTestStore) -> CSVExporter:
    return CSVExporter(app_config, store)


@pytest.fixture
def fake_speedtest(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Callable[..., Path]:
    """Install a scripted ``speedtest-cli`` in front of everything else on PATH.

    The script prints canned stdout/stderr, optionally sleeps, and exits with
    the requested code.
    """

    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    monkeypatch.setenv("PATH", f"{bin_dir}:/usr/bin:/bin")

    def install(
        stdout: Union[str, bytes] = GOOD_OUTPUT,
        stderr: Union[str, bytes] = "",
        exit_code: int = 0,
        sleep: Optional[float] = None,
    ) -> Path:
        for name, content in (("stdout.txt", stdout), ("stderr.txt", stderr)):
            if isinstance(content, str):
                content = content.encode("utf-8")
            (bin_dir / name).write_bytes(content)
        lines = [
            "#!/bin/sh",
            f'cat "{bin_dir}/stdout.txt"',
            f'cat "{bin_dir}/stderr.txt" >&2',
        ]
        if sleep is not None:
            # a plain child process, so the sleep outlives a kill of the shell alone
            lines.append(f"sleep {sleep}")
        lines.append(f"exit {exit_code}")
        script = bin_dir / "speedtest-cli"
        script.write_text("\n".join(lines) + "\n", encoding="utf-8")
        script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return script

    return install


@pytest.fixture
def missing_speedtest(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """PATH that contains no ``speedtest-cli`` at all."""

    empty_dir = tmp_path / "empty-bin"
    empty_dir.mkdir()
    monkeypatch.setenv("PATH", str(empty_dir))
    return empty_dir
