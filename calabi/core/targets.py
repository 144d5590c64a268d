"""Incident targets and the shared target registry.

A target is a Manifold contract that resolves YES if GitHub reports an
incident of a given class on a given calendar day. The registry is written
by the updater task and read by the scanner task; every access goes through
one asyncio.Lock held for a single map operation.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING

from calabi.utils.logger import get_logger
from calabi.utils.question import day_from_question, month_from_question

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import date

    from calabi.connectors.manifold_client import ManifoldMarket

logger = get_logger("targets")

ANY_INCIDENT_PHRASE = "Will GitHub have any incident"
RED_INCIDENT_PHRASE = "Will GitHub have a red incident"


def utc_today() -> date:
    return datetime.now(UTC).date()


# --- Exceptions ---


class UnknownIndicatorError(ValueError):
    """Status feed reported an indicator we do not know how to bet on."""


class TargetParseError(ValueError):
    """A matching market question has no extractable month or day."""


# --- Enums ---


class IncidentType(StrEnum):
    ANY = "any"
    RED = "red"

    @classmethod
    def from_indicator(cls, indicator: str) -> IncidentType:
        """Map a status feed indicator to the incident class it satisfies.

        ``none`` is not an incident and must be handled by the caller.
        """
        if indicator in ("minor", "major"):
            return cls.ANY
        if indicator == "critical":
            return cls.RED
        raise UnknownIndicatorError(f"unknown incident indicator: {indicator!r}")


# --- Target ---


@dataclass(frozen=True)
class TargetIncident:
    """A wagerable contract tied to one calendar day and incident class."""

    contract_id: str
    month: int
    day: int
    incident_type: IncidentType

    def is_past(self, today: date) -> bool:
        """True once the target's day has fully elapsed."""
        return today.month > self.month or (today.month == self.month and today.day > self.day)

    def matches(self, today: date, incident_type: IncidentType) -> bool:
        return (
            self.month == today.month
            and self.day == today.day
            and self.incident_type == incident_type
        )


def classify_market(
    market: ManifoldMarket,
    trusted_creator_ids: Iterable[str],
) -> IncidentType | None:
    """Return the incident class a market bets on, or None if it is not a target.

    Only markets created by trusted authors count.
    """
    if market.creator_id not in set(trusted_creator_ids):
        return None
    if ANY_INCIDENT_PHRASE in market.question:
        return IncidentType.ANY
    if RED_INCIDENT_PHRASE in market.question:
        return IncidentType.RED
    return None


def target_from_market(market: ManifoldMarket, incident_type: IncidentType) -> TargetIncident:
    """Build a target from a classified market.

    Raises:
        TargetParseError: the question names no month or day.
    """
    month = month_from_question(market.question)
    if month is None:
        raise TargetParseError(f"failed to parse month from question: {market.question!r}")
    day = day_from_question(market.question)
    if day is None:
        raise TargetParseError(f"failed to parse day from question: {market.question!r}")

    return TargetIncident(
        contract_id=market.id,
        month=month,
        day=day,
        incident_type=incident_type,
    )


# --- Registry ---


class TargetRegistry:
    """In-memory contract_id → TargetIncident map shared by updater and scanner."""

    def __init__(self) -> None:
        self._targets: dict[str, TargetIncident] = {}
        self._lock = asyncio.Lock()

    async def count(self) -> int:
        async with self._lock:
            return len(self._targets)

    async def snapshot(self) -> list[TargetIncident]:
        """Copy of all current targets."""
        async with self._lock:
            return list(self._targets.values())

    async def add(self, target: TargetIncident) -> bool:
        """Insert a target unless its contract is already registered.

        Returns:
            True if the target was inserted.
        """
        async with self._lock:
            if target.contract_id in self._targets:
                return False
            self._targets[target.contract_id] = target
            return True

    async def prune(self, today: date) -> int:
        """Drop targets whose day has fully elapsed. Returns the number removed."""
        async with self._lock:
            past = [cid for cid, target in self._targets.items() if target.is_past(today)]
            for cid in past:
                del self._targets[cid]
        if past:
            logger.debug("targets_pruned", count=len(past), contract_ids=past)
        return len(past)

    async def matching(self, today: date, incident_type: IncidentType) -> list[TargetIncident]:
        """Snapshot of targets for today's date and the given incident class."""
        async with self._lock:
            return [t for t in self._targets.values() if t.matches(today, incident_type)]
