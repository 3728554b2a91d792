"""
Final-inventory evaluation.

Scores the six end-of-game item slots against what the player's role usually
needs. The score starts at a fixed base, each rule nudges it up or down, and
the result is clamped to 0-100.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from dotacoach.analysis.models import (
    Insight,
    InsightCategory,
    InsightType,
    ParticipantRecord,
    Role,
    Severity,
)
from dotacoach.core import items as catalogue
from dotacoach.core.config import ItemBuildConfig

logger = logging.getLogger(__name__)


@dataclass
class ItemBuildResult:
    items: list[str] = field(default_factory=list)
    score: int = 0
    insights: list[Insight] = field(default_factory=list)
    positives: list[str] = field(default_factory=list)
    key_issues: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "items": list(self.items),
            "score": self.score,
            "insights": [i.to_dict() for i in self.insights],
            "positives": list(self.positives),
            "key_issues": list(self.key_issues),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ItemBuildResult:
        return cls(
            items=list(data.get("items", [])),
            score=int(data.get("score", 0)),
            insights=[Insight.from_dict(i) for i in data.get("insights", [])],
            positives=list(data.get("positives", [])),
            key_issues=list(data.get("key_issues", [])),
        )


def _item_insight(severity: Severity, title: str, recommendation: str) -> Insight:
    return Insight(
        insight_type=InsightType.MISTAKE,
        category=InsightCategory.ITEMIZATION,
        severity=severity,
        title=title,
        description=title,
        recommendation=recommendation,
    )


class ItemBuildAnalyzer:
    """Rule-based review of a final item build."""

    def __init__(self, config: ItemBuildConfig | None = None):
        self.config = config or ItemBuildConfig()

    def analyze_participant(self, participant: ParticipantRecord, role: Role, duration: float) -> ItemBuildResult:
        return self.analyze(
            role,
            participant.items,
            duration,
            kills=participant.kills,
            deaths=participant.deaths,
            gold_per_min=participant.gold_per_min,
            net_worth=participant.net_worth,
        )

    def analyze(
        self,
        role: Role,
        item_ids: list[int] | tuple[int, ...],
        duration: float,
        kills: int = 0,
        deaths: int = 0,
        gold_per_min: float = 0.0,
        net_worth: int = 0,
    ) -> ItemBuildResult:
        """Score a final inventory.

        Args:
            role: Derived role of the player.
            item_ids: Final item ids; zeros and unknown ids are ignored.
            duration: Match length in seconds.
            kills, deaths, gold_per_min, net_worth: Final stats of the player.

        Returns:
            ItemBuildResult with the clamped score and its explanations.
        """
        cfg = self.config
        minutes = duration / 60
        items = catalogue.item_names(item_ids)
        result = ItemBuildResult(items=items, score=cfg.base_score)

        if role is Role.CORE:
            self._core_notes(result, minutes, gold_per_min)
            self._core_score(result, minutes, gold_per_min, net_worth)
        else:
            self._support_notes(result)

        if deaths > cfg.defensive_min_deaths and not catalogue.has_any(items, catalogue.DEFENSIVE_ITEMS):
            result.insights.append(
                _item_insight(
                    Severity.CRITICAL,
                    f"{deaths} deaths with no defensive items",
                    "You're dying frequently. Consider BKB, Linken's Sphere, or Aeon Disk to stay alive "
                    "longer in fights.",
                )
            )
            result.key_issues.append("High deaths, no defensive items")
            result.score += cfg.no_defensive_items

        result.score = max(0, min(100, result.score))
        logger.debug(f"Item build score {result.score} for {role.value} with {len(items)} item(s)")
        return result

    def _core_score(self, result: ItemBuildResult, minutes: float, gold_per_min: float, net_worth: int) -> None:
        cfg = self.config
        items = result.items

        if minutes > cfg.spell_immunity_after_minutes:
            if catalogue.has_any(items, catalogue.SPELL_IMMUNITY_ITEMS):
                result.positives.append("Built BKB for survivability")
                result.score += cfg.has_spell_immunity
            else:
                result.insights.append(
                    _item_insight(
                        Severity.CRITICAL,
                        "Missing Black King Bar in a long game",
                        "BKB is essential for most cores in team fights. Consider buying it to avoid getting "
                        "locked down by stuns and magic damage.",
                    )
                )
                result.key_issues.append(f"No BKB in {int(cfg.spell_immunity_after_minutes)}+ min game")
                result.score += cfg.missing_spell_immunity

        if catalogue.has_any(items, catalogue.MOBILITY_ITEMS):
            result.positives.append("Good mobility item choice")
            result.score += cfg.has_mobility
        else:
            result.insights.append(
                _item_insight(
                    Severity.HIGH,
                    "No mobility item detected",
                    "Consider Blink Dagger, Force Staff, or Hurricane Pike for better positioning in fights.",
                )
            )
            result.score += cfg.missing_mobility

        if minutes > cfg.late_game_minutes:
            early = catalogue.matching(items, catalogue.EARLY_STAT_ITEMS)
            if early:
                result.insights.append(
                    _item_insight(
                        Severity.LOW,
                        f"Still carrying early-game items: {', '.join(early)}",
                        "In late game, consider selling early-game items to make room for more impactful items.",
                    )
                )
                result.score += cfg.early_items_late
            if not catalogue.has_any(items, catalogue.BOOT_ITEMS):
                result.positives.append("Sold boots for extra item slot (late game)")
                result.score += cfg.sold_boots_late

        damage = catalogue.matching(items, catalogue.DAMAGE_ITEMS)
        if not damage and net_worth > cfg.no_damage_net_worth:
            result.insights.append(
                _item_insight(
                    Severity.CRITICAL,
                    "No major damage items despite high net worth",
                    "Build damage items like Daedalus, MKB, or Butterfly to increase your impact in fights.",
                )
            )
            result.key_issues.append("No damage items")
            result.score += cfg.no_damage_items
        elif len(damage) >= 2:
            result.positives.append(f"Good damage itemization: {', '.join(damage)}")
            result.score += cfg.damage_items_bonus

        if gold_per_min > cfg.farm_item_min_gpm:
            farm = catalogue.matching(items, catalogue.FARM_ACCELERATOR_ITEMS)
            if farm:
                result.positives.append(f"Excellent farming with {farm[0]}")
                result.score += cfg.farm_item_bonus

    def _core_notes(self, result: ItemBuildResult, minutes: float, gold_per_min: float) -> None:
        cfg = self.config
        items = result.items

        if (
            gold_per_min < cfg.low_gpm_farm_check
            and minutes > cfg.low_gpm_farm_minutes
            and not catalogue.has_any(items, catalogue.LOW_GPM_FARM_ITEMS)
        ):
            result.insights.append(
                _item_insight(
                    Severity.HIGH,
                    "Low GPM without farming accelerator",
                    "Consider Battle Fury, Maelstrom, or Radiance to farm faster and catch up in net worth.",
                )
            )

        if catalogue.has_exact(items, catalogue.SCEPTER_ITEMS):
            result.positives.append("Built Aghanim's Scepter for power spike")

        if minutes > cfg.luxury_minutes and len(catalogue.matching(items, catalogue.LUXURY_ITEMS)) >= 2:
            result.positives.append("Strong late-game itemization")

    def _support_notes(self, result: ItemBuildResult) -> None:
        items = result.items

        utility = catalogue.matching(items, catalogue.SUPPORT_UTILITY_ITEMS)
        if utility:
            result.positives.append(f"Good support itemization ({len(utility)} utility items)")
        else:
            result.insights.append(
                _item_insight(
                    Severity.CRITICAL,
                    "No utility items as support",
                    "Build Glimmer Cape, Force Staff, or Mekansm to save teammates and provide utility in fights.",
                )
            )
            result.key_issues.append("No utility items")

        if catalogue.has_any(items, catalogue.VISION_ITEMS):
            result.positives.append("Bought Gem for vision control")

        carry = catalogue.matching(items, catalogue.CARRY_ITEMS)
        if carry:
            result.insights.append(
                _item_insight(
                    Severity.HIGH,
                    f"Building carry items as support: {', '.join(carry)}",
                    "As a support, focus on utility items that help your team rather than expensive damage items.",
                )
            )
