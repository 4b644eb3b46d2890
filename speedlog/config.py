"""Configuration loading helpers for the speed test recorder."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml


@dataclass
class PathsConfig:
    data_dir: Path
    logs_dir: Path


@dataclass
class SpeedtestConfig:
    # None lets a stalled run hang forever
    timeout_seconds: Optional[float] = 120.0

    def __post_init__(self) -> None:
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise ValueError("speedtest.timeout_seconds must be positive or null")


@dataclass
class SchedulerConfig:
    enabled: bool = False
    interval_minutes: int = 60


@dataclass
class WebConfig:
    host: str = "0.0.0.0"
    port: int = 8000
    secret_key: str = "change-me"
    reverse_proxy_headers: bool = False


@dataclass
class ExportConfig:
    csv_name: str = "results.csv"


@dataclass
class LoggingConfig:
    level: str = "INFO"


@dataclass
class AppConfig:
    root_dir: Path
    paths: PathsConfig
    speedtest: SpeedtestConfig
    scheduler: SchedulerConfig
    web: WebConfig
    export: ExportConfig
    logging: LoggingConfig


def _as_path(base: Path, maybe_path: Optional[str]) -> Path:
    if not maybe_path:
        raise ValueError("Path configuration entries cannot be empty")
    path = (base / maybe_path).resolve()
    path.mkdir(parents=True, exist_ok=True)
    return path


def load_config(path: Optional[str] = None) -> AppConfig:
    """Load application configuration from YAML file."""

    root_dir = Path(path).resolve().parent if path else Path.cwd()
    source_path = Path(path) if path else root_dir / "config.yaml"
    if not source_path.exists():
        raise FileNotFoundError(f"Missing configuration file at {source_path}")

    with source_path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}

    paths_data = data.get("paths", {})
    paths = PathsConfig(
        data_dir=_as_path(root_dir, paths_data.get("data_dir", "data")),
        logs_dir=_as_path(root_dir, paths_data.get("logs_dir", "logs")),
    )

    return AppConfig(
        root_dir=root_dir,
        paths=paths,
        speedtest=SpeedtestConfig(**data.get("speedtest", {})),
        scheduler=SchedulerConfig(**data.get("scheduler", {})),
        web=WebConfig(**data.get("web", {})),
        export=ExportConfig(**data.get("export", {})),
        logging=LoggingConfig(**data.get("logging", {})),
    )
