from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import pytest

from speedlog.db import Base
from speedlog.measurements.errors import ParseError, ProcessError, SpawnError, SpeedtestTimeoutError, StorageError
from speedlog.measurements.manager import MeasurementManager
from speedlog.measurements.models import MeasurementRecord


class FailingStore:
    def __init__(self):
        self.insert_calls = 0

    def insert_record(self, **kwargs):
        self.insert_calls += 1
        raise StorageError("database is locked")

    def list_records(self, limit=None):
        return []


def test_successful_run_is_recorded_and_listed_first(fake_speedtest, manager):
    fake_speedtest()

    record = manager.run_measurement()

    assert isinstance(record, MeasurementRecord)
    assert record.id is not None
    assert (record.ping_ms, record.download_mbps, record.upload_mbps) == (23.456, 85.67, 12.34)
    assert manager.get_history()[0] == record


def test_parse_failure_adds_no_record(fake_speedtest, manager):
    fake_speedtest(stdout="Invalid output format\n")

    with pytest.raises(ParseError):
        manager.run_measurement()

    assert manager.get_history() == []


def test_missing_utility_adds_no_record(missing_speedtest, manager):
    with pytest.raises(SpawnError):
        manager.run_measurement()

    assert manager.get_history() == []


def test_process_failure_adds_no_record(fake_speedtest, manager):
    fake_speedtest(stdout=" ", stderr="ERROR: No matched servers\n", exit_code=1)

    with pytest.raises(ProcessError) as excinfo:
        manager.run_measurement()

    assert excinfo.value.exit_code == 1
    assert manager.get_history() == []


def test_timeout_adds_no_record(fake_speedtest, app_config, store):
    fake_speedtest(sleep=30)
    app_config.speedtest.timeout_seconds = 0.5
    manager = MeasurementManager(app_config, store)

    with pytest.raises(SpeedtestTimeoutError):
        manager.run_measurement()

    assert manager.get_history() == []


def test_storage_failure_is_reported_not_returned(fake_speedtest, app_config):
    fake_speedtest()
    store = FailingStore()
    manager = MeasurementManager(app_config, store)

    with pytest.raises(StorageError, match="database is locked"):
        manager.run_measurement()

    assert store.insert_calls == 1


def test_storage_failure_from_database(fake_speedtest, manager, store):
    fake_speedtest()
    Base.metadata.drop_all(store.Session.kw["bind"])

    with pytest.raises(StorageError, match="Failed to store speed test record"):
        manager.run_measurement()


def test_no_insert_attempted_when_measurement_fails(fake_speedtest, app_config):
    fake_speedtest(stdout="Ping: 1 ms\n")
    store = FailingStore()
    manager = MeasurementManager(app_config, store)

    with pytest.raises(ParseError):
        manager.run_measurement()

    assert store.insert_calls == 0


def test_n_runs_give_n_records_newest_first(fake_speedtest, manager):
    fake_speedtest()

    created = [manager.run_measurement() for _ in range(5)]
    history = manager.get_history()

    assert len(history) == 5
    assert {record.id for record in history} == {record.id for record in created}
    timestamps = [record.timestamp for record in history]
    assert timestamps == sorted(timestamps, reverse=True)


def test_concurrent_runs_are_independent(fake_speedtest, manager):
    fake_speedtest()

    with ThreadPoolExecutor(max_workers=4) as pool:
        records = list(pool.map(lambda _: manager.run_measurement(), range(4)))

    assert len({record.id for record in records}) == 4
    assert len(manager.get_history()) == 4


def test_to_dict_uses_wire_names(fake_speedtest, manager):
    fake_speedtest()
    record = manager.run_measurement()

    payload = manager.to_dict(record)

    assert payload == {
        "id": record.id,
        "timestamp": record.timestamp.isoformat(),
        "download_speed": 85.67,
        "upload_speed": 12.34,
        "ping": 23.456,
    }
