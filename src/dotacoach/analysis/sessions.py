"""Play-session grouping and tilt detection over a user's match history.

Everything here is a pure function of the match list and the session config.
Sessions are rebuilt on every query; nothing is persisted.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone, tzinfo
from typing import Any
from zoneinfo import ZoneInfo

import pandas as pd

from dotacoach.analysis.models import TiltRisk, Trend, WarningSeverity, WarningType
from dotacoach.core.config import SessionConfig

logger = logging.getLogger(__name__)

NOT_ENOUGH_DATA = "Not enough data"

# Local-hour buckets, [start, end)
TIME_PERIODS: dict[str, tuple[int, int]] = {
    "morning": (6, 12),
    "afternoon": (12, 18),
    "evening": (18, 24),
    "night": (0, 6),
}

DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]

# Minimum history before any bucket aggregate is reported
TIME_OF_DAY_MIN_MATCHES = 5
DAY_OF_WEEK_MIN_MATCHES = 7


# ---------------------------------------------------------------------------
# Dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SessionMatch:
    """One analyzed match as seen by the session analyzer."""

    match_id: str
    won: bool
    kills: int
    deaths: int
    assists: int
    gold_per_min: float
    start_time: int  # unix seconds
    duration: float  # seconds
    hero_name: str = ""
    last_hits: int = 0
    xp_per_min: float = 0.0
    hero_id: int = 0
    role: str = ""  # Role value at analysis time
    denies: int = 0
    hero_damage: int = 0

    @property
    def end_time(self) -> float:
        return self.start_time + self.duration

    @property
    def kda(self) -> float:
        if self.deaths > 0:
            return (self.kills + self.assists) / self.deaths
        return float(self.kills + self.assists)

    def to_dict(self) -> dict[str, Any]:
        return {
            "match_id": self.match_id,
            "won": self.won,
            "kills": self.kills,
            "deaths": self.deaths,
            "assists": self.assists,
            "gold_per_min": self.gold_per_min,
            "start_time": self.start_time,
            "duration": self.duration,
            "hero_name": self.hero_name,
            "last_hits": self.last_hits,
            "xp_per_min": self.xp_per_min,
            "hero_id": self.hero_id,
            "role": self.role,
            "denies": self.denies,
            "hero_damage": self.hero_damage,
        }


@dataclass
class SessionStats:
    total_matches: int
    wins: int
    losses: int
    win_rate: float  # percent
    avg_kda: float
    avg_gpm: float
    longest_losing_streak: int
    trend: Trend


@dataclass
class PlaySession:
    """A run of matches with no gap longer than the session threshold."""

    session_id: str
    matches: list[SessionMatch]
    stats: SessionStats

    @property
    def start_time(self) -> int:
        return self.matches[0].start_time

    @property
    def end_time(self) -> float:
        return self.matches[-1].end_time

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "matches": [m.to_dict() for m in self.matches],
            "stats": {
                "total_matches": self.stats.total_matches,
                "wins": self.stats.wins,
                "losses": self.stats.losses,
                "win_rate": self.stats.win_rate,
                "avg_kda": self.stats.avg_kda,
                "avg_gpm": self.stats.avg_gpm,
                "longest_losing_streak": self.stats.longest_losing_streak,
                "trend": self.stats.trend.value,
            },
        }


@dataclass
class TiltWarning:
    type: WarningType
    severity: WarningSeverity
    message: str


@dataclass
class TiltReport:
    """Current tilt state plus the historical patterns behind it.

    Rate patterns are None when the history is too small to say anything;
    ``patterns`` reports those as the neutral default.
    """

    current_tilt_risk: TiltRisk = TiltRisk.LOW
    recent_losing_streak: int = 0
    last_match_won: bool | None = None
    active_warnings: list[TiltWarning] = field(default_factory=list)
    performance_after_loss: float | None = None
    late_night_win_rate: float | None = None
    long_session_win_rate: float | None = None
    default_rate: float = 50.0

    @property
    def patterns(self) -> dict[str, float]:
        def _rate(value: float | None) -> float:
            return self.default_rate if value is None else value

        return {
            "performance_after_loss": _rate(self.performance_after_loss),
            "late_night_win_rate": _rate(self.late_night_win_rate),
            "long_session_win_rate": _rate(self.long_session_win_rate),
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "current_tilt_risk": self.current_tilt_risk.value,
            "recent_losing_streak": self.recent_losing_streak,
            "last_match_won": self.last_match_won,
            "active_warnings": [
                {"type": w.type.value, "severity": w.severity.value, "message": w.message}
                for w in self.active_warnings
            ],
            "patterns": self.patterns,
        }


@dataclass
class BucketStats:
    games: int = 0
    wins: int = 0

    @property
    def win_rate(self) -> float:
        return self.wins / self.games * 100 if self.games > 0 else 0.0


@dataclass
class TimeOfDayStats:
    periods: dict[str, BucketStats]
    best_time_to_play: str = NOT_ENOUGH_DATA


@dataclass
class DayOfWeekStats:
    days: dict[str, BucketStats]  # Sunday first
    best_day: str = NOT_ENOUGH_DATA
    worst_day: str = NOT_ENOUGH_DATA


# ---------------------------------------------------------------------------
# Session grouping
# ---------------------------------------------------------------------------


def _chronological(matches: list[SessionMatch]) -> list[SessionMatch]:
    return sorted(matches, key=lambda m: m.start_time)


def longest_losing_streak(matches: list[SessionMatch]) -> int:
    longest = current = 0
    for match in matches:
        if match.won:
            current = 0
        else:
            current += 1
            longest = max(longest, current)
    return longest


def session_trend(matches: list[SessionMatch], min_matches: int = 4, threshold: float = 0.15) -> Trend:
    """Compare the first half's win rate against the second half's."""
    if len(matches) < min_matches:
        return Trend.STABLE
    mid = len(matches) // 2
    first, second = matches[:mid], matches[mid:]
    first_rate = sum(m.won for m in first) / len(first)
    second_rate = sum(m.won for m in second) / len(second)
    if second_rate > first_rate + threshold:
        return Trend.IMPROVING
    if second_rate < first_rate - threshold:
        return Trend.DECLINING
    return Trend.STABLE


def build_session(
    matches: list[SessionMatch], session_number: int, config: SessionConfig | None = None
) -> PlaySession:
    config = config or SessionConfig()
    wins = sum(1 for m in matches if m.won)
    total = len(matches)
    stats = SessionStats(
        total_matches=total,
        wins=wins,
        losses=total - wins,
        win_rate=wins / total * 100,
        avg_kda=sum(m.kda for m in matches) / total,
        avg_gpm=sum(m.gold_per_min for m in matches) / total,
        longest_losing_streak=longest_losing_streak(matches),
        trend=session_trend(matches, config.trend_min_matches, config.trend_threshold),
    )
    return PlaySession(session_id=f"session-{session_number}", matches=list(matches), stats=stats)


def group_sessions(matches: list[SessionMatch], config: SessionConfig | None = None) -> list[PlaySession]:
    """Partition matches into sessions, oldest first.

    A new session starts when the gap from the previous match's end to the
    next match's start exceeds ``config.gap_minutes``.
    """
    config = config or SessionConfig()
    sessions: list[PlaySession] = []
    current: list[SessionMatch] = []

    for match in _chronological(matches):
        if current:
            gap_minutes = (match.start_time - current[-1].end_time) / 60
            if gap_minutes > config.gap_minutes:
                sessions.append(build_session(current, len(sessions) + 1, config))
                current = []
        current.append(match)

    if current:
        sessions.append(build_session(current, len(sessions) + 1, config))
    return sessions


def resolve_timezone(name: str | None) -> tzinfo | None:
    """tzinfo for an IANA zone name; None means the system local zone."""
    if not name:
        return None
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


# ---------------------------------------------------------------------------
# Analyzer
# ---------------------------------------------------------------------------


class SessionTiltAnalyzer:
    """Session, streak and time-bucket reports for one user's history."""

    def __init__(self, config: SessionConfig | None = None):
        self.config = config or SessionConfig()
        self.tz = resolve_timezone(self.config.timezone)

    def local_time(self, start_time: int) -> datetime:
        return datetime.fromtimestamp(start_time, self.tz)

    def _within(self, matches: list[SessionMatch], days_back: int, now: float | None) -> list[SessionMatch]:
        cutoff = (time.time() if now is None else now) - days_back * 86400
        return [m for m in matches if m.start_time >= cutoff]

    def get_play_sessions(
        self, matches: list[SessionMatch], days_back: int | None = None, now: float | None = None
    ) -> list[PlaySession]:
        """Sessions inside the lookback window, most recent first."""
        days = self.config.lookback_days if days_back is None else days_back
        recent = self._within(matches, days, now)
        sessions = group_sessions(recent, self.config)
        logger.debug(f"Grouped {len(recent)} match(es) into {len(sessions)} session(s)")
        return list(reversed(sessions))

    # -- tilt patterns --------------------------------------------------------

    def performance_after_loss(self, matches: list[SessionMatch]) -> float | None:
        """Win rate of the match right after each loss, over the full history."""
        ordered = _chronological(matches)
        games = wins = 0
        for previous, current in zip(ordered, ordered[1:]):
            if not previous.won:
                games += 1
                wins += current.won
        if games == 0:
            return None
        return wins / games * 100

    def late_night_win_rate(self, matches: list[SessionMatch]) -> float | None:
        cfg = self.config
        late = [
            m
            for m in matches
            if cfg.late_night_start_hour <= self.local_time(m.start_time).hour < cfg.late_night_end_hour
        ]
        if len(late) < cfg.late_night_min_matches:
            return None
        return sum(m.won for m in late) / len(late) * 100

    def long_session_win_rate(self, matches: list[SessionMatch], now: float | None = None) -> float | None:
        """Win rate of the Nth-and-later match within each session."""
        sessions = self.get_play_sessions(matches, self.config.long_session_lookback_days, now)
        games = wins = 0
        for session in sessions:
            for match in session.matches[self.config.long_session_from_match - 1 :]:
                games += 1
                wins += match.won
        if games == 0:
            return None
        return wins / games * 100

    def get_tilt_report(self, matches: list[SessionMatch], now: float | None = None) -> TiltReport:
        cfg = self.config
        if not matches:
            return TiltReport(default_rate=cfg.default_rate)

        recent = _chronological(matches)[-cfg.tilt_window :]
        recent.reverse()

        streak = 0
        for match in recent:
            if match.won:
                break
            streak += 1

        after_loss = self.performance_after_loss(matches)
        late_night = self.late_night_win_rate(matches)
        long_session = self.long_session_win_rate(matches, now)

        warnings: list[TiltWarning] = []
        if streak >= cfg.streak_warning:
            warnings.append(
                TiltWarning(
                    type=WarningType.LOSING_STREAK,
                    severity=WarningSeverity.DANGER if streak >= cfg.streak_danger else WarningSeverity.WARNING,
                    message=f"You're on a {streak} game losing streak. Consider taking a break!",
                )
            )
        if late_night is not None and late_night < cfg.low_win_rate:
            warnings.append(
                TiltWarning(
                    type=WarningType.LATE_NIGHT,
                    severity=WarningSeverity.WARNING,
                    message=f"Your late night win rate is only {late_night:.0f}%. You play better earlier!",
                )
            )
        if long_session is not None and long_session < cfg.low_win_rate:
            warnings.append(
                TiltWarning(
                    type=WarningType.LONG_SESSION,
                    severity=WarningSeverity.WARNING,
                    message=(
                        f"Your win rate drops to {long_session:.0f}% after "
                        f"{cfg.long_session_from_match - 1}+ games. Take breaks!"
                    ),
                )
            )

        if streak >= cfg.streak_danger or any(w.severity is WarningSeverity.DANGER for w in warnings):
            risk = TiltRisk.HIGH
        elif streak >= cfg.streak_warning or len(warnings) >= cfg.medium_risk_warnings:
            risk = TiltRisk.MEDIUM
        else:
            risk = TiltRisk.LOW

        if risk is not TiltRisk.LOW:
            logger.info(f"Tilt risk {risk.value}: streak={streak}, warnings={len(warnings)}")

        return TiltReport(
            current_tilt_risk=risk,
            recent_losing_streak=streak,
            last_match_won=recent[0].won,
            active_warnings=warnings,
            performance_after_loss=after_loss,
            late_night_win_rate=late_night,
            long_session_win_rate=long_session,
            default_rate=cfg.default_rate,
        )

    # -- time buckets ---------------------------------------------------------

    def _frame(self, matches: list[SessionMatch]) -> pd.DataFrame:
        local = [self.local_time(m.start_time) for m in matches]
        return pd.DataFrame(
            {
                "hour": [d.hour for d in local],
                # Sunday = 0
                "day": [(d.weekday() + 1) % 7 for d in local],
                "won": [bool(m.won) for m in matches],
            }
        )

    @staticmethod
    def _bucket_counts(frame: pd.DataFrame, column: str, labels: list) -> dict:
        grouped = frame.groupby(column)["won"].agg(["count", "sum"])
        grouped = grouped.reindex(labels, fill_value=0)
        return {
            label: BucketStats(games=int(row["count"]), wins=int(row["sum"]))
            for label, row in grouped.iterrows()
        }

    def time_of_day_stats(self, matches: list[SessionMatch]) -> TimeOfDayStats:
        empty = {period: BucketStats() for period in TIME_PERIODS}
        if len(matches) < TIME_OF_DAY_MIN_MATCHES:
            return TimeOfDayStats(periods=empty)

        frame = self._frame(matches)
        frame["period"] = frame["hour"].map(time_period)
        periods = self._bucket_counts(frame, "period", list(TIME_PERIODS))

        best = NOT_ENOUGH_DATA
        best_rate = -1.0
        for period, bucket in periods.items():
            if bucket.games >= self.config.best_bucket_min_games and bucket.win_rate > best_rate:
                best_rate = bucket.win_rate
                best = period.capitalize()
        return TimeOfDayStats(periods=periods, best_time_to_play=best)

    def day_of_week_stats(self, matches: list[SessionMatch]) -> DayOfWeekStats:
        empty = {day: BucketStats() for day in DAY_NAMES}
        if len(matches) < DAY_OF_WEEK_MIN_MATCHES:
            return DayOfWeekStats(days=empty)

        by_index = self._bucket_counts(self._frame(matches), "day", list(range(7)))
        days = {DAY_NAMES[i]: bucket for i, bucket in by_index.items()}

        qualified = [
            (day, bucket) for day, bucket in days.items() if bucket.games >= self.config.best_bucket_min_games
        ]
        if not qualified:
            return DayOfWeekStats(days=days)
        ranked = sorted(qualified, key=lambda item: item[1].win_rate, reverse=True)
        return DayOfWeekStats(days=days, best_day=ranked[0][0], worst_day=ranked[-1][0])


def time_period(hour: int) -> str:
    for period, (start, end) in TIME_PERIODS.items():
        if start <= hour < end:
            return period
    return "night"
