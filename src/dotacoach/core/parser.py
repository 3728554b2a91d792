"""
Ingest for provider match payloads.

Converts an OpenDota-shaped match object into the immutable MatchRecord used
by the analyzers. Keys the provider did not send become None so the detectors
can skip the checks that need them.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from dotacoach.analysis.models import (
    KillEvent,
    MatchRecord,
    ObjectiveEvent,
    ParticipantRecord,
    PurchaseEvent,
    TeamFight,
    TeamFightParticipant,
)
from dotacoach.analysis.sessions import SessionMatch

logger = logging.getLogger(__name__)

ITEM_SLOTS = ("item_0", "item_1", "item_2", "item_3", "item_4", "item_5")


def _as_list(value: Any, name: str) -> list | None:
    """The value when the provider sent a JSON array, otherwise None.

    Other shapes (for example a ``{state: ticks}`` mapping) carry no per-minute
    or per-event data, so they are treated as missing rather than iterated.
    """
    if value is None:
        return None
    if not isinstance(value, (list, tuple)):
        logger.warning(f"Ignoring {name}: expected a list, got {type(value).__name__}")
        return None
    return list(value)


def _int_tuple(value: Any, name: str) -> tuple[int, ...] | None:
    values = _as_list(value, name)
    if values is None:
        return None
    return tuple(int(v) for v in values)


def _kills_log(value: Any) -> tuple[KillEvent, ...] | None:
    entries = _as_list(value, "kills_log")
    if entries is None:
        return None
    return tuple(KillEvent(time=float(e.get("time", 0)), victim=str(e.get("key", ""))) for e in entries)


def _purchase_log(value: Any) -> tuple[PurchaseEvent, ...] | None:
    entries = _as_list(value, "purchase_log")
    if entries is None:
        return None
    return tuple(
        PurchaseEvent(time=float(e.get("time", 0)), item=str(e.get("key", ""))) for e in entries
    )


def _objectives(value: Any) -> tuple[ObjectiveEvent, ...] | None:
    entries = _as_list(value, "objectives")
    if entries is None:
        return None
    return tuple(
        ObjectiveEvent(
            time=float(e.get("time", 0)),
            type=str(e.get("type", "")),
            team=e.get("team"),
            key=str(e["key"]) if e.get("key") is not None else None,
        )
        for e in entries
    )


def _teamfights(value: Any) -> tuple[TeamFight, ...] | None:
    entries = _as_list(value, "teamfights")
    if entries is None:
        return None
    fights = []
    for fight in entries:
        players = tuple(
            TeamFightParticipant(
                deaths=int(p.get("deaths", 0)),
                damage=float(p.get("damage", 0)),
                healing=float(p.get("healing", 0)),
                gold_delta=float(p.get("gold_delta", 0)),
                xp_delta=float(p.get("xp_delta", 0)),
            )
            for p in fight.get("players", [])
        )
        fights.append(
            TeamFight(
                start=float(fight.get("start", 0)),
                end=float(fight.get("end", 0)),
                deaths=int(fight.get("deaths", 0)),
                players=players,
            )
        )
    return tuple(fights)


def participant_from_dict(data: dict[str, Any]) -> ParticipantRecord:
    """Build a ParticipantRecord from one entry of the provider's ``players`` list."""
    items = tuple(int(data[slot]) for slot in ITEM_SLOTS if data.get(slot))

    return ParticipantRecord(
        player_slot=int(data.get("player_slot", 0)),
        hero_id=int(data.get("hero_id", 0)),
        account_id=data.get("account_id"),
        hero_name=str(data.get("hero_name") or ""),
        kills=int(data.get("kills", 0)),
        deaths=int(data.get("deaths", 0)),
        assists=int(data.get("assists", 0)),
        last_hits=int(data.get("last_hits", 0)),
        denies=int(data.get("denies", 0)),
        gold_per_min=float(data.get("gold_per_min", 0)),
        xp_per_min=float(data.get("xp_per_min", 0)),
        net_worth=int(data.get("net_worth", 0)),
        hero_damage=int(data.get("hero_damage", 0)),
        tower_damage=int(data.get("tower_damage", 0)),
        hero_healing=int(data.get("hero_healing") or 0),
        level=int(data.get("level", 0)),
        obs_placed=data.get("obs_placed"),
        sen_placed=data.get("sen_placed"),
        camps_stacked=data.get("camps_stacked"),
        items=items,
        lh_t=_int_tuple(data.get("lh_t"), "lh_t"),
        kills_log=_kills_log(data.get("kills_log")),
        life_state=_int_tuple(data.get("life_state"), "life_state"),
        purchase_log=_purchase_log(data.get("purchase_log")),
    )


def match_from_dict(data: dict[str, Any]) -> MatchRecord:
    """Build a MatchRecord from a provider match object."""
    gold_adv = _as_list(data.get("radiant_gold_adv"), "radiant_gold_adv")

    match = MatchRecord(
        match_id=str(data.get("match_id", "")),
        duration=float(data.get("duration", 0)),
        radiant_win=bool(data.get("radiant_win", False)),
        participants=tuple(participant_from_dict(p) for p in data.get("players", [])),
        start_time=data.get("start_time"),
        radiant_gold_adv=tuple(float(v) for v in gold_adv) if gold_adv is not None else None,
        objectives=_objectives(data.get("objectives")),
        teamfights=_teamfights(data.get("teamfights")),
    )
    logger.debug(f"Parsed match {match.match_id} with {len(match.participants)} participants")
    return match


def load_match(path: Path | str) -> MatchRecord:
    """Read a provider match payload from a JSON file."""
    with open(path) as f:
        return match_from_dict(json.load(f))


def session_match_from_dict(data: dict[str, Any]) -> SessionMatch:
    """Build a history row from an analyzed-match dict."""
    return SessionMatch(
        match_id=str(data.get("match_id", "")),
        won=bool(data.get("won", False)),
        kills=int(data.get("kills", 0)),
        deaths=int(data.get("deaths", 0)),
        assists=int(data.get("assists", 0)),
        gold_per_min=float(data.get("gold_per_min", data.get("gpm", 0))),
        start_time=int(data.get("start_time", 0)),
        duration=float(data.get("duration", 0)),
        hero_name=str(data.get("hero_name") or ""),
        last_hits=int(data.get("last_hits") or 0),
        xp_per_min=float(data.get("xp_per_min") or 0),
        hero_id=int(data.get("hero_id") or 0),
        role=str(data.get("role") or data.get("detected_role") or ""),
        denies=int(data.get("denies") or 0),
        hero_damage=int(data.get("hero_damage") or 0),
    )


def history_from_dicts(rows: list[dict[str, Any]]) -> list[SessionMatch]:
    """Build a time-ordered match history, dropping rows without a start time."""
    matches = [session_match_from_dict(r) for r in rows if r.get("start_time") is not None]
    matches.sort(key=lambda m: m.start_time)
    return matches


def load_history(path: Path | str) -> list[SessionMatch]:
    """Read a match history (a JSON list of analyzed-match rows)."""
    with open(path) as f:
        return history_from_dicts(json.load(f))
