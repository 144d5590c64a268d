"""Target registry updater.

Every few seconds: list Manifold markets, prune elapsed targets, register
newly listed GitHub incident markets. Any failure is fatal for the task.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from calabi.config.settings import UpdaterConfig, get_config
from calabi.core.targets import classify_market, target_from_market, utc_today
from calabi.utils.logger import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import date

    from calabi.connectors.manifold_client import ManifoldClient
    from calabi.core.targets import TargetRegistry

logger = get_logger("updater")


class TargetUpdater:
    """Keeps the target registry in sync with the markets listed on Manifold."""

    def __init__(
        self,
        manifold: ManifoldClient,
        registry: TargetRegistry,
        config: UpdaterConfig | None = None,
        clock: Callable[[], date] = utc_today,
    ) -> None:
        cfg = config or get_config().updater
        self._manifold = manifold
        self._registry = registry
        self._interval = cfg.interval_s
        self._trusted_creator_ids = frozenset(cfg.trusted_creator_ids)
        self._clock = clock

    async def refresh_once(self) -> int:
        """Run one update cycle.

        Returns:
            Number of newly registered targets.

        Raises:
            ManifoldError: listing failed.
            TargetParseError: a trusted incident market has no parseable date.
        """
        for target in await self._registry.snapshot():
            logger.debug(
                "current_target",
                contract_id=target.contract_id,
                month=target.month,
                day=target.day,
                incident_type=str(target.incident_type),
            )

        markets = await self._manifold.fetch_markets()

        today = self._clock()
        await self._registry.prune(today)

        added = 0
        for market in markets:
            incident_type = classify_market(market, self._trusted_creator_ids)
            if incident_type is None:
                continue

            target = target_from_market(market, incident_type)

            if target.is_past(today):
                logger.debug("past_target_skipped", contract_id=target.contract_id)
                continue

            if await self._registry.add(target):
                added += 1
                logger.info(
                    "new_target",
                    contract_id=target.contract_id,
                    incident_type=str(incident_type),
                    month=target.month,
                    day=target.day,
                    question=market.question,
                )

        return added

    async def run(self) -> None:
        """Update forever. Only returns by raising."""
        logger.info("updater_started", interval_s=self._interval)
        while True:
            logger.debug("checking_for_new_targets")
            await self.refresh_once()
            await asyncio.sleep(self._interval)
