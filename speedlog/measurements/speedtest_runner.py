"""Speedtest measurement runner (speedtest-cli in --simple mode)."""

from __future__ import annotations

import logging
import os
import signal
import subprocess
from typing import List, Optional

from ..config import AppConfig
from .errors import ProcessError, SpawnError, SpeedtestTimeoutError
from .models import MeasurementResult
from .parser import parse_speedtest_output

LOGGER = logging.getLogger(__name__)

SPEEDTEST_COMMAND: List[str] = ["speedtest-cli", "--simple"]

# Grace period for collecting leftover output once the process group is killed
REAP_TIMEOUT_SECONDS = 5.0


def _kill_process_group(process: subprocess.Popen) -> None:
    if os.name != "posix":
        process.kill()
        return
    try:
        os.killpg(process.pid, signal.SIGKILL)
    except ProcessLookupError:
        LOGGER.debug("speedtest-cli process group %s already gone", process.pid)


def run_speedtest_cli(timeout: Optional[float] = None) -> str:
    """Run the utility to completion and return its standard output.

    Both pipes are drained while the process runs so a chatty child can never
    block on a full pipe. Undecodable bytes are replaced, leaving the parser
    to reject the text.
    """

    LOGGER.info("Running speedtest command: %s", " ".join(SPEEDTEST_COMMAND))
    try:
        process = subprocess.Popen(
            SPEEDTEST_COMMAND,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            encoding="utf-8",
            errors="replace",
            start_new_session=True,
        )
    except OSError as exc:
        LOGGER.error("Failed to start speedtest-cli: %s", exc)
        raise SpawnError(f"Failed to start speedtest-cli: {exc}") from exc

    try:
        stdout, stderr = process.communicate(timeout=timeout)
    except subprocess.TimeoutExpired as exc:
        # the utility's own children share the group and may hold the pipes
        _kill_process_group(process)
        try:
            process.communicate(timeout=REAP_TIMEOUT_SECONDS)
        except subprocess.TimeoutExpired:
            LOGGER.warning("speedtest-cli pipes still open after kill, abandoning them")
            process.stdout.close()
            process.stderr.close()
            process.wait()
        LOGGER.error("speedtest-cli timed out after %s seconds, process killed", timeout)
        raise SpeedtestTimeoutError(timeout) from exc

    if process.returncode != 0:
        LOGGER.error("speedtest-cli exited with code %s: %s", process.returncode, stderr.strip())
        raise ProcessError(process.returncode, stderr)

    if stderr:
        LOGGER.debug("speedtest-cli stderr (ignored): %s", stderr.strip())
    return stdout


def run_speedtest_test(config: AppConfig) -> MeasurementResult:
    output = run_speedtest_cli(timeout=config.speedtest.timeout_seconds)
    return parse_speedtest_output(output)
