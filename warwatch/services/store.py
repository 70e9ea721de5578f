"""
Event store backed by SQLAlchemy.

Every insert is idempotent on primary key: a duplicate id is a silent no-op.
Each table has a retention cap; once it is exceeded the oldest rows by
timestamp are deleted in the same transaction as the insert.
"""

import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterator, List, Optional, Sequence, Type

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from warwatch.api.schemas import (
    AISummary,
    Alert,
    CanonicalEvent,
    CanonicalNewsItem,
    CountryBreakdown,
    EventType,
    Statistics,
)
from warwatch.core.config import Settings
from warwatch.core.timestamps import to_utc_iso
from warwatch.db import create_session_factory, create_store_engine, init_schema
from warwatch.models import AISummaryModel, AlertModel, EventModel, NewsItemModel

logger = logging.getLogger(__name__)

_STAT_TYPES = (
    EventType.MISSILE_LAUNCH,
    EventType.MISSILE_INTERCEPT,
    EventType.MISSILE_HIT,
    EventType.DRONE_LAUNCH,
    EventType.DRONE_INTERCEPT,
)


def _row_dict(row) -> Dict[str, Any]:
    return {column.name: getattr(row, column.name) for column in row.__table__.columns}


class Store:
    """CRUD surface the ingestion pipeline writes to and the API reads from."""

    def __init__(
        self,
        engine: Engine,
        max_events: int = 500,
        max_news: int = 500,
        max_alerts: int = 200,
        max_summaries: int = 50,
    ) -> None:
        self.engine = engine
        self._session_factory = create_session_factory(engine)
        self._lock = threading.Lock()
        self.caps = {
            EventModel: max_events,
            NewsItemModel: max_news,
            AlertModel: max_alerts,
            AISummaryModel: max_summaries,
        }
        init_schema(engine)

    @classmethod
    def from_settings(cls, settings: Settings) -> "Store":
        return cls(
            create_store_engine(settings.database_url),
            max_events=settings.max_events,
            max_news=settings.max_news,
            max_alerts=settings.max_alerts,
            max_summaries=settings.max_summaries,
        )

    @contextmanager
    def _write_session(self) -> Iterator[Session]:
        with self._lock:
            session = self._session_factory()
            try:
                yield session
                session.commit()
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()

    @contextmanager
    def _read_session(self) -> Iterator[Session]:
        # SQLite shares one connection across threads; reads take the same lock
        with self._lock:
            session = self._session_factory()
            try:
                yield session
            finally:
                session.close()

    def _insert_ignore(self, session: Session, model: Type, rows: Sequence[Dict[str, Any]]) -> int:
        """Insert rows, skipping any whose primary key already exists."""
        if not rows:
            return 0

        dialect = self.engine.dialect.name
        if dialect in ("sqlite", "postgresql"):
            insert_fn = sqlite_insert if dialect == "sqlite" else pg_insert
            stmt = insert_fn(model).values(list(rows)).on_conflict_do_nothing(index_elements=["id"])
            result = session.execute(stmt)
            return max(result.rowcount or 0, 0)

        inserted = 0
        for row in rows:
            if session.get(model, row["id"]) is None:
                session.add(model(**row))
                inserted += 1
        session.flush()
        return inserted

    def _enforce_cap(self, session: Session, model: Type, order_column) -> int:
        cap = self.caps[model]
        total = session.scalar(select(func.count()).select_from(model))
        excess = (total or 0) - cap
        if excess <= 0:
            return 0

        oldest = select(model.id).order_by(order_column.asc(), model.id.asc()).limit(excess)
        session.execute(delete(model).where(model.id.in_(oldest)))
        logger.debug(f"Evicted {excess} rows from {model.__tablename__} (cap {cap})")
        return excess

    # Inserts

    def insert_event(self, event: CanonicalEvent) -> bool:
        """Insert one event; returns False when the id already existed."""
        return self.insert_events_batch([event]) == 1

    def insert_events_batch(self, events: Sequence[CanonicalEvent]) -> int:
        rows = [e.model_dump(mode="json") for e in events]
        with self._write_session() as session:
            inserted = self._insert_ignore(session, EventModel, rows)
            self._enforce_cap(session, EventModel, EventModel.timestamp)
        return inserted

    def insert_news_batch(self, items: Sequence[CanonicalNewsItem]) -> int:
        rows = [n.model_dump(mode="json") for n in items]
        with self._write_session() as session:
            inserted = self._insert_ignore(session, NewsItemModel, rows)
            self._enforce_cap(session, NewsItemModel, NewsItemModel.timestamp)
        return inserted

    def insert_alerts_batch(self, alerts: Sequence[Alert]) -> int:
        rows = [a.model_dump(mode="json") for a in alerts]
        with self._write_session() as session:
            inserted = self._insert_ignore(session, AlertModel, rows)
            self._enforce_cap(session, AlertModel, AlertModel.timestamp)
        return inserted

    def insert_ai_summary(self, summary: AISummary) -> None:
        """Append a new summary row; the most recent row is the current one."""
        with self._write_session() as session:
            session.add(AISummaryModel(**summary.model_dump(mode="json")))
            session.flush()
            self._enforce_cap(session, AISummaryModel, AISummaryModel.id)

    # Reads

    def get_recent_events(self, limit: int = 100) -> List[CanonicalEvent]:
        with self._read_session() as session:
            rows = session.scalars(
                select(EventModel).order_by(EventModel.timestamp.desc()).limit(limit)
            ).all()
            return [CanonicalEvent(**_row_dict(r)) for r in rows]

    def get_recent_news(self, limit: int = 100) -> List[CanonicalNewsItem]:
        with self._read_session() as session:
            rows = session.scalars(
                select(NewsItemModel).order_by(NewsItemModel.timestamp.desc()).limit(limit)
            ).all()
            return [CanonicalNewsItem(**_row_dict(r)) for r in rows]

    def get_recent_alerts(self, limit: int = 100, active_only: bool = False) -> List[Alert]:
        with self._read_session() as session:
            query = select(AlertModel)
            if active_only:
                query = query.where(AlertModel.active.is_(True))
            rows = session.scalars(query.order_by(AlertModel.timestamp.desc()).limit(limit)).all()
            return [Alert(**_row_dict(r)) for r in rows]

    def get_latest_summary(self) -> Optional[AISummary]:
        with self._read_session() as session:
            row = session.scalars(
                select(AISummaryModel).order_by(AISummaryModel.id.desc()).limit(1)
            ).first()
            if row is None:
                return None
            data = _row_dict(row)
            data.pop("id")
            return AISummary(**data)

    def count(self, kind: str) -> int:
        models = {
            "events": EventModel,
            "news": NewsItemModel,
            "alerts": AlertModel,
            "summaries": AISummaryModel,
        }
        with self._read_session() as session:
            return session.scalar(select(func.count()).select_from(models[kind])) or 0

    def get_statistics(self, since: Optional[str] = None) -> Statistics:
        """Launch, interception and hit tallies over the retained events.

        ``since`` (UTC ISO) bounds the recent-events count; it defaults to 24
        hours ago. The interception rate is a percentage of launches, 0 when
        nothing was launched.
        """
        since = since or to_utc_iso(datetime.now(timezone.utc) - timedelta(hours=24))
        with self._read_session() as session:
            grouped = session.execute(
                select(EventModel.country, EventModel.type, func.count())
                .where(EventModel.type.in_([t.value for t in _STAT_TYPES]))
                .group_by(EventModel.country, EventModel.type)
            ).all()
            active_alerts = session.scalar(
                select(func.count()).select_from(AlertModel).where(AlertModel.active.is_(True))
            ) or 0
            recent = session.scalar(
                select(func.count()).select_from(EventModel).where(EventModel.timestamp >= since)
            ) or 0

        totals = {t: 0 for t in _STAT_TYPES}
        by_country: Dict[str, CountryBreakdown] = {}
        for country, event_type, n in grouped:
            event_type = EventType(event_type)
            totals[event_type] += n
            breakdown = by_country.setdefault(country or "Unknown", CountryBreakdown())
            if event_type in (EventType.MISSILE_LAUNCH, EventType.DRONE_LAUNCH):
                breakdown.launched += n
            elif event_type in (EventType.MISSILE_INTERCEPT, EventType.DRONE_INTERCEPT):
                breakdown.intercepted += n
            else:
                breakdown.hits += n

        launched = totals[EventType.MISSILE_LAUNCH] + totals[EventType.DRONE_LAUNCH]
        defended = totals[EventType.MISSILE_INTERCEPT] + totals[EventType.DRONE_INTERCEPT]
        return Statistics(
            total_missiles_launched=totals[EventType.MISSILE_LAUNCH],
            total_intercepted=totals[EventType.MISSILE_INTERCEPT],
            total_hits=totals[EventType.MISSILE_HIT],
            total_drones_launched=totals[EventType.DRONE_LAUNCH],
            total_drones_intercepted=totals[EventType.DRONE_INTERCEPT],
            interception_rate=round(100.0 * defended / launched, 1) if launched else 0.0,
            by_country=by_country,
            active_alerts=active_alerts,
            last_24h_events=recent,
        )

    # Maintenance

    def expire_alerts(self, older_than: str) -> int:
        """Mark active alerts issued before ``older_than`` (UTC ISO) inactive."""
        with self._write_session() as session:
            result = session.execute(
                update(AlertModel)
                .where(AlertModel.active.is_(True), AlertModel.timestamp < older_than)
                .values(active=False)
            )
            return max(result.rowcount or 0, 0)
