"""
dotacoach analysis database.

Persists hero benchmarks and cached per-player analyses so repeated requests
for the same (match, player slot) skip the detectors, and so session and
improvement reports have a match history to work from.

Uses SQLite through the SQLAlchemy ORM.
"""

import json
import logging
import os
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Callable

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
    event,
)
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from dotacoach.analysis.models import HeroBenchmark, Insight
from dotacoach.analysis.sessions import SessionMatch


def _utc_now() -> datetime:
    """Return current UTC time (timezone-aware)."""
    return datetime.now(UTC)


logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = Path.home() / ".dotacoach" / "coach.db"
# Seconds a connection waits for another writer to release the database
LOCK_TIMEOUT = 30
Base = declarative_base()


# =============================================================================
# Database Models
# =============================================================================


class HeroStatistic(Base):
    """Running benchmark averages for one hero."""

    __tablename__ = "hero_statistics"

    hero_id = Column(Integer, primary_key=True, autoincrement=False)
    hero_name = Column(String(100), default="")
    total_matches = Column(Integer, default=0)
    updated_at = Column(DateTime, default=_utc_now, onupdate=_utc_now)

    avg_gpm = Column(Float, default=0.0)
    avg_xpm = Column(Float, default=0.0)
    avg_cs_per_min = Column(Float, default=0.0)
    avg_last_hits = Column(Float, default=0.0)
    avg_denies = Column(Float, default=0.0)
    avg_kills = Column(Float, default=0.0)
    avg_deaths = Column(Float, default=0.0)
    avg_assists = Column(Float, default=0.0)
    avg_hero_damage = Column(Float, default=0.0)
    avg_tower_damage = Column(Float, default=0.0)
    avg_hero_healing = Column(Float, default=0.0)
    avg_obs_placed = Column(Float, default=0.0)
    avg_sen_placed = Column(Float, default=0.0)
    avg_camps_stacked = Column(Float, default=0.0)
    obs_samples = Column(Integer, default=0)
    sen_samples = Column(Integer, default=0)
    camps_samples = Column(Integer, default=0)

    p50_gpm = Column(Float)
    p50_xpm = Column(Float)
    p50_cs_per_min = Column(Float)
    p75_gpm = Column(Float)
    p75_xpm = Column(Float)
    p75_cs_per_min = Column(Float)

    def to_benchmark(self) -> HeroBenchmark:
        data = {c.name: getattr(self, c.name) for c in self.__table__.columns if c.name != "updated_at"}
        return HeroBenchmark.from_dict(data)


class AnalyzedMatch(Base):
    """One cached analysis, keyed by match and player slot."""

    __tablename__ = "analyzed_matches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    match_id = Column(String(32), nullable=False, index=True)
    player_slot = Column(Integer, nullable=False)
    user_id = Column(String(64), index=True)
    analyzed_at = Column(DateTime, default=_utc_now)

    hero_id = Column(Integer)
    hero_name = Column(String(100))
    role = Column(String(20))
    won = Column(Boolean)
    kills = Column(Integer, default=0)
    deaths = Column(Integer, default=0)
    assists = Column(Integer, default=0)
    last_hits = Column(Integer, default=0)
    denies = Column(Integer, default=0)
    hero_damage = Column(Integer, default=0)
    gold_per_min = Column(Float, default=0.0)
    xp_per_min = Column(Float, default=0.0)
    start_time = Column(Integer)
    duration = Column(Float)

    result_json = Column(Text, nullable=False)

    __table_args__ = (
        UniqueConstraint("match_id", "player_slot", name="uq_analyzed_match_slot"),
        Index("idx_analyzed_user_start", "user_id", "start_time"),
    )

    def to_session_match(self) -> SessionMatch:
        return SessionMatch(
            match_id=self.match_id,
            won=bool(self.won),
            kills=self.kills or 0,
            deaths=self.deaths or 0,
            assists=self.assists or 0,
            gold_per_min=self.gold_per_min or 0.0,
            start_time=self.start_time,
            duration=self.duration or 0.0,
            hero_name=self.hero_name or "",
            last_hits=self.last_hits or 0,
            xp_per_min=self.xp_per_min or 0.0,
            hero_id=self.hero_id or 0,
            role=self.role or "",
            denies=self.denies or 0,
            hero_damage=self.hero_damage or 0,
        )

    def to_dict(self) -> dict[str, Any]:
        """Flat row without the result blob."""
        return {
            "match_id": self.match_id,
            "player_slot": self.player_slot,
            "user_id": self.user_id,
            "analyzed_at": self.analyzed_at.isoformat() if self.analyzed_at else None,
            "hero_id": self.hero_id,
            "hero_name": self.hero_name,
            "role": self.role,
            "won": self.won,
            "kills": self.kills,
            "deaths": self.deaths,
            "assists": self.assists,
            "last_hits": self.last_hits,
            "denies": self.denies,
            "hero_damage": self.hero_damage,
            "gold_per_min": self.gold_per_min,
            "xp_per_min": self.xp_per_min,
            "start_time": self.start_time,
            "duration": self.duration,
        }


# =============================================================================
# Database Manager
# =============================================================================


def _take_over_transactions(dbapi_connection, connection_record) -> None:
    # pysqlite defers BEGIN until the first write; SQLAlchemy emits it instead
    dbapi_connection.isolation_level = None


def _begin_transaction(conn) -> None:
    conn.exec_driver_sql(conn.get_execution_options().get("begin_mode", "BEGIN"))


class DatabaseManager:
    """
    Manages database connections and operations.

    Serves as the result cache, the match-history source for session
    analysis, and the storage behind SqlBenchmarkBackend.
    """

    def __init__(self, db_path: Path | str | None = None, echo: bool = False):
        """Initialize database connection."""
        if db_path is None:
            db_path = os.environ.get("DOTACOACH_DB_PATH", DEFAULT_DB_PATH)

        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self.engine = create_engine(
            f"sqlite:///{self.db_path}",
            echo=echo,
            connect_args={"check_same_thread": False, "timeout": LOCK_TIMEOUT},
        )
        event.listen(self.engine, "connect", _take_over_transactions)
        event.listen(self.engine, "begin", _begin_transaction)
        self.SessionLocal = sessionmaker(bind=self.engine)
        # Writers that read first take the write lock up front
        self.WriteSessionLocal = sessionmaker(bind=self.engine.execution_options(begin_mode="BEGIN IMMEDIATE"))
        Base.metadata.create_all(self.engine)

        logger.info(f"Database initialized at: {self.db_path}")

    def get_session(self) -> Session:
        """Get a database session."""
        return self.SessionLocal()

    # =========================================================================
    # Analysis cache
    # =========================================================================

    def get_cached_result(self, match_id: str, player_slot: int) -> dict[str, Any] | None:
        """Stored analysis for (match, slot), or None."""
        session = self.get_session()
        try:
            row = (
                session.query(AnalyzedMatch)
                .filter(AnalyzedMatch.match_id == str(match_id), AnalyzedMatch.player_slot == player_slot)
                .first()
            )
            if row is None:
                return None
            return json.loads(row.result_json)
        finally:
            session.close()

    def save_result(self, result: dict[str, Any], user_id: str | None = None) -> None:
        """
        Store or replace an analysis result.

        Args:
            result: Serialized analysis; must carry ``match_id``, ``player_slot``
                and a ``player`` block with the flat match-history fields.
            user_id: Owner of the analysis, used for history queries.
        """
        player = result.get("player", {})
        match_id = str(result["match_id"])
        player_slot = int(result["player_slot"])

        session = self.get_session()
        try:
            row = (
                session.query(AnalyzedMatch)
                .filter(AnalyzedMatch.match_id == match_id, AnalyzedMatch.player_slot == player_slot)
                .first()
            )
            if row is None:
                row = AnalyzedMatch(match_id=match_id, player_slot=player_slot)
                session.add(row)

            if user_id is not None:
                row.user_id = user_id
            row.analyzed_at = _utc_now()
            row.hero_id = player.get("hero_id")
            row.hero_name = player.get("hero_name")
            row.role = result.get("role")
            row.won = player.get("won")
            row.kills = player.get("kills", 0)
            row.deaths = player.get("deaths", 0)
            row.assists = player.get("assists", 0)
            row.last_hits = player.get("last_hits", 0)
            row.denies = player.get("denies", 0)
            row.hero_damage = player.get("hero_damage", 0)
            row.gold_per_min = player.get("gold_per_min", 0.0)
            row.xp_per_min = player.get("xp_per_min", 0.0)
            row.start_time = player.get("start_time")
            row.duration = player.get("duration")
            row.result_json = json.dumps(result)

            session.commit()
            logger.info(f"Saved analysis for match {match_id} slot {player_slot}")
        except Exception as e:
            session.rollback()
            logger.error(f"Failed to save analysis: {e}")
            raise
        finally:
            session.close()

    # =========================================================================
    # Match history
    # =========================================================================

    def get_match_history(self, user_id: str | None = None, hero_id: int | None = None) -> list[SessionMatch]:
        """Analyzed matches with a known start time, oldest first."""
        session = self.get_session()
        try:
            query = session.query(AnalyzedMatch).filter(AnalyzedMatch.start_time.isnot(None))
            if user_id is not None:
                query = query.filter(AnalyzedMatch.user_id == user_id)
            if hero_id is not None:
                query = query.filter(AnalyzedMatch.hero_id == hero_id)
            rows = query.order_by(AnalyzedMatch.start_time.asc()).all()
            return [r.to_session_match() for r in rows]
        finally:
            session.close()

    def get_insights_by_match(self, user_id: str | None = None) -> dict[str, list[Insight]]:
        """Merged insight lists from stored analyses, keyed by match id."""
        session = self.get_session()
        try:
            query = session.query(AnalyzedMatch)
            if user_id is not None:
                query = query.filter(AnalyzedMatch.user_id == user_id)
            insights: dict[str, list[Insight]] = {}
            for row in query.all():
                data = json.loads(row.result_json)
                insights[row.match_id] = [Insight.from_dict(i) for i in data.get("insights", [])]
            return insights
        finally:
            session.close()

    # =========================================================================
    # Hero statistics
    # =========================================================================

    def get_hero_statistic(self, hero_id: int) -> HeroBenchmark | None:
        session = self.get_session()
        try:
            row = session.get(HeroStatistic, hero_id)
            return row.to_benchmark() if row is not None else None
        finally:
            session.close()

    def update_hero_statistic(
        self, hero_id: int, update: Callable[[HeroBenchmark | None], HeroBenchmark]
    ) -> HeroBenchmark:
        """
        Read, change and write one hero row in a single transaction.

        The transaction opens with BEGIN IMMEDIATE, so writers in other
        processes sharing the database file wait for it instead of
        overwriting its increments.

        Args:
            hero_id: Row to update.
            update: Receives the stored benchmark (None for a new hero) and
                returns the benchmark to store.
        """
        session = self.WriteSessionLocal()
        try:
            row = session.get(HeroStatistic, hero_id)
            benchmark = update(row.to_benchmark() if row is not None else None)
            if row is None:
                row = HeroStatistic(hero_id=hero_id)
                session.add(row)
            for key, value in benchmark.to_dict().items():
                if key != "hero_id":
                    setattr(row, key, value)
            session.commit()
            return benchmark
        except Exception as e:
            session.rollback()
            logger.error(f"Failed to update hero statistics for {hero_id}: {e}")
            raise
        finally:
            session.close()

    def all_hero_statistics(self) -> list[HeroBenchmark]:
        session = self.get_session()
        try:
            return [row.to_benchmark() for row in session.query(HeroStatistic).all()]
        finally:
            session.close()

    def get_global_stats(self) -> dict[str, int]:
        session = self.get_session()
        try:
            return {
                "analyzed_matches": session.query(AnalyzedMatch).count(),
                "heroes_benchmarked": session.query(HeroStatistic).count(),
            }
        finally:
            session.close()


class SqlBenchmarkBackend:
    """Benchmark backend over the hero_statistics table."""

    def __init__(self, db: DatabaseManager):
        self.db = db

    def get(self, hero_id: int) -> HeroBenchmark | None:
        return self.db.get_hero_statistic(hero_id)

    def update(self, hero_id: int, fn: Callable[[HeroBenchmark | None], HeroBenchmark]) -> HeroBenchmark:
        return self.db.update_hero_statistic(hero_id, fn)

    def all(self) -> list[HeroBenchmark]:
        return self.db.all_hero_statistics()

