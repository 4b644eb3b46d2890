"""Database utilities, ORM model and the record store."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, List, Optional

from sqlalchemy import DateTime, Float, Integer, create_engine, desc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker

from .measurements.errors import StorageError
from .measurements.models import MeasurementRecord

LOGGER = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class SpeedTestRecord(Base):
    __tablename__ = "speed_test_records"
    # AUTOINCREMENT keeps SQLite from handing out the id of a deleted row again
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    download_speed: Mapped[float] = mapped_column(Float, nullable=False)
    upload_speed: Mapped[float] = mapped_column(Float, nullable=False)
    ping: Mapped[float] = mapped_column(Float, nullable=False)

    def to_record(self) -> MeasurementRecord:
        return MeasurementRecord(
            id=self.id,
            timestamp=self.timestamp,
            download_mbps=self.download_speed,
            upload_mbps=self.upload_speed,
            ping_ms=self.ping,
        )


def init_db(data_dir: Path) -> sessionmaker:
    db_path = data_dir / "speedlog.db"
    engine = create_engine(f"sqlite:///{db_path}", future=True)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, future=True, expire_on_commit=False)


@contextmanager
def get_session(Session: sessionmaker) -> Iterator:
    session = Session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


class SpeedTestStore:
    """Append-and-read log of speed test records.

    Every call runs in its own session, so concurrent callers never share
    ORM state. A committed insert is visible to the next ``list_records``.
    """

    def __init__(self, session_factory: sessionmaker):
        self.Session = session_factory

    def insert_record(
        self,
        download_mbps: float,
        upload_mbps: float,
        ping_ms: float,
        timestamp: datetime,
    ) -> MeasurementRecord:
        try:
            with get_session(self.Session) as session:
                row = SpeedTestRecord(
                    timestamp=timestamp,
                    download_speed=download_mbps,
                    upload_speed=upload_mbps,
                    ping=ping_ms,
                )
                session.add(row)
                session.flush()
                record = row.to_record()
        except SQLAlchemyError as exc:
            LOGGER.error("Failed to store speed test record: %s", exc)
            raise StorageError(f"Failed to store speed test record: {exc}") from exc
        return record

    def list_records(self, limit: Optional[int] = None) -> List[MeasurementRecord]:
        if limit is not None and limit < 1:
            raise ValueError(f"limit must be a positive integer, got {limit}")
        try:
            with get_session(self.Session) as session:
                query = session.query(SpeedTestRecord).order_by(
                    desc(SpeedTestRecord.timestamp), desc(SpeedTestRecord.id)
                )
                if limit is not None:
                    query = query.limit(limit)
                return [row.to_record() for row in query.all()]
        except SQLAlchemyError as exc:
            LOGGER.error("Failed to read speed test history: %s", exc)
            raise StorageError(f"Failed to read speed test history: {exc}") from exc

    def iter_records_ascending(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Iterator[MeasurementRecord]:
        try:
            with get_session(self.Session) as session:
                query = session.query(SpeedTestRecord).order_by(SpeedTestRecord.timestamp, SpeedTestRecord.id)
                if start:
                    query = query.filter(SpeedTestRecord.timestamp >= start)
                if end:
                    query = query.filter(SpeedTestRecord.timestamp <= end)
                rows = query.all()
        except SQLAlchemyError as exc:
            LOGGER.error("Failed to read speed test history for export: %s", exc)
            raise StorageError(f"Failed to read speed test history: {exc}") from exc
        for row in rows:
            yield row.to_record()
