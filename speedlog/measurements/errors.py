"""Typed failures raised while acquiring and recording a measurement."""

from __future__ import annotations

from typing import Optional


class MeasurementError(RuntimeError):
    """Base class for every failure of a measurement cycle."""

    kind = "measurement_error"


class SpawnError(MeasurementError):
    """The speedtest process could not be started at all."""

    kind = "spawn_error"


class ProcessError(MeasurementError):
    """The speedtest process exited with a non-zero status."""

    kind = "process_error"

    def __init__(self, exit_code: int, stderr: str):
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(f"speedtest-cli exited with code {exit_code}: {stderr.strip()}")


class ParseError(MeasurementError):
    """The speedtest process succeeded but its output was not understood."""

    kind = "parse_error"

    def __init__(self, message: str, output: Optional[str] = None):
        self.output = output
        super().__init__(message)


class SpeedtestTimeoutError(MeasurementError, TimeoutError):
    """The speedtest process did not finish in time and was killed."""

    kind = "timeout_error"

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"speedtest-cli did not finish within {timeout:g} seconds")


class StorageError(MeasurementError):
    """The measurement completed but could not be recorded."""

    kind = "storage_error"
