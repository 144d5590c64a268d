"""Incident scanner: the betting loop.

One cycle:
1. Skip everything on excluded calendar days.
2. Poll the GitHub status feed; nothing to do when the indicator is "none".
3. Classify the indicator (unknown indicators are fatal).
4. Snapshot registry targets for today's date and incident class.
5. Drop contracts we already bet on.
6. Place ``bets_per_target`` concurrent YES bets per remaining target.
   One failed bet fails the cycle and the task; placed bets stay placed.
7. Exclude every contract of a fully successful batch for the process lifetime.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from calabi.config.settings import ScannerConfig, get_config
from calabi.connectors.manifold_client import Outcome
from calabi.core.targets import IncidentType, utc_today
from calabi.utils.logger import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import date

    from calabi.connectors.github_status import GitHubStatusClient
    from calabi.connectors.manifold_client import ManifoldClient
    from calabi.core.targets import TargetIncident, TargetRegistry

logger = get_logger("scanner")


class IncidentScanner:
    """Watches GitHub status and bets on matching targets."""

    def __init__(
        self,
        status_feed: GitHubStatusClient,
        manifold: ManifoldClient,
        registry: TargetRegistry,
        config: ScannerConfig | None = None,
        clock: Callable[[], date] = utc_today,
    ) -> None:
        cfg = config or get_config().scanner
        self._status_feed = status_feed
        self._manifold = manifold
        self._registry = registry
        self._clock = clock
        self._poll_interval = cfg.poll_interval_ms / 1000
        self._exclusion_day_sleep = cfg.exclusion_day_sleep_minutes * 60
        self._exclusion_dates = frozenset((month, day) for month, day in cfg.exclusion_dates)
        self._bet_size = cfg.bet_size
        self._bets_per_target = cfg.bets_per_target

        # Contracts already bet on. Never shrinks.
        self._excluded: set[str] = set()

    @property
    def excluded(self) -> frozenset[str]:
        return frozenset(self._excluded)

    def is_excluded_day(self, today: date) -> bool:
        return (today.month, today.day) in self._exclusion_dates

    async def _dispatch(self, targets: list[TargetIncident], incident_type: IncidentType) -> None:
        """Fan out all bets for this cycle and wait for every one of them.

        If any bet fails, the remaining bets are still awaited and their
        outcomes logged before the first error is re-raised.
        """
        contract_ids: list[str] = []
        bets: list[asyncio.Task[None]] = []
        for target in targets:
            logger.debug(
                "target_matches_incident",
                contract_id=target.contract_id,
                incident_type=str(incident_type),
                target_month=target.month,
                target_day=target.day,
            )
            for _ in range(self._bets_per_target):
                contract_ids.append(target.contract_id)
                bets.append(
                    asyncio.create_task(
                        self._manifold.bet(target.contract_id, Outcome.YES, self._bet_size)
                    )
                )

        try:
            await asyncio.gather(*bets)
        except Exception:
            results = await asyncio.gather(*bets, return_exceptions=True)
            for contract_id, result in zip(contract_ids, results, strict=True):
                if isinstance(result, BaseException):
                    logger.error(
                        "bet_failed",
                        contract_id=contract_id,
                        error_type=type(result).__name__,
                        error=str(result),
                    )
                else:
                    logger.warning("bet_placed_in_failed_batch", contract_id=contract_id)
            raise

    async def scan_once(self) -> float:
        """Run one scan cycle.

        Returns:
            Seconds to sleep before the next cycle.

        Raises:
            StatusFeedError: the status feed failed permanently.
            UnknownIndicatorError: the feed reported an indicator we cannot classify.
            ManifoldError: any bet in the batch failed.
        """
        today = self._clock()

        if self.is_excluded_day(today):
            logger.info(
                "today_excluded",
                today_month=today.month,
                today_day=today.day,
                sleep_minutes=self._exclusion_day_sleep / 60,
            )
            return self._exclusion_day_sleep

        status = await self._status_feed.get_incident_status()

        if status.is_ok:
            logger.debug("github_ok")
            return self._poll_interval

        incident_type = IncidentType.from_indicator(status.indicator)
        logger.debug(
            "incident_detected",
            indicator=status.indicator,
            incident_type=str(incident_type),
            description=status.description,
        )
        if incident_type == IncidentType.RED:
            logger.info("red_incident", description=status.description)

        logger.debug("live_targets", count=await self._registry.count())

        matching = await self._registry.matching(today, incident_type)
        logger.debug("matching_targets", count=len(matching))

        matching = [t for t in matching if t.contract_id not in self._excluded]
        logger.debug("matching_targets_not_excluded", count=len(matching))

        if not matching:
            return self._poll_interval

        await self._dispatch(matching, incident_type)
        logger.info(
            "bets_placed",
            contracts=[t.contract_id for t in matching],
            bets=len(matching) * self._bets_per_target,
            bet_size=self._bet_size,
        )

        for target in matching:
            self._excluded.add(target.contract_id)

        return self._poll_interval

    async def run(self) -> None:
        """Scan forever. Only returns by raising."""
        logger.info(
            "scanner_started",
            poll_interval_s=self._poll_interval,
            bets_per_target=self._bets_per_target,
            bet_size=self._bet_size,
        )
        while True:
            delay = await self.scan_once()
            await asyncio.sleep(delay)
