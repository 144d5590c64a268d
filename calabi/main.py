"""Calabi main entry point.

Runs two asyncio tasks for the lifetime of the process:
- updater: keeps the target registry in sync with Manifold
- scanner: polls GitHub status and bets on matching targets

Whichever task finishes first (normally by raising) ends the process; the
other task is cancelled. Any error exits with status 1.
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from pydantic import ValidationError

from calabi.config.settings import CalabiConfig, StatusFeedConfig, get_config
from calabi.connectors.github_status import GitHubStatusClient, StatusFeedError
from calabi.connectors.manifold_client import ManifoldClient
from calabi.core.scanner import IncidentScanner
from calabi.core.targets import TargetRegistry
from calabi.core.updater import TargetUpdater
from calabi.utils.logger import get_logger, setup_logging

log = get_logger("main")


class Calabi:
    """Owns the HTTP clients, the shared registry and the two loops."""

    def __init__(self, config: CalabiConfig) -> None:
        self.config = config
        self.registry = TargetRegistry()
        self.status_feed: GitHubStatusClient | None = None
        self.manifold: ManifoldClient | None = None

    async def startup(self) -> None:
        """Create the HTTP clients."""
        log.info("calabi_starting", version="0.1.0")
        self.status_feed = GitHubStatusClient(config=self.config.status_feed)
        self.manifold = ManifoldClient(
            api_key=self.config.manifold_api_key,
            config=self.config.manifold,
        )

    async def shutdown(self) -> None:
        """Close all HTTP sessions."""
        if self.status_feed:
            await self.status_feed.close()
        if self.manifold:
            await self.manifold.close()
        log.info("calabi_shutdown_complete")

    async def run(self) -> None:
        """Run updater and scanner until the first of them finishes.

        Re-raises the error of the task that finished first.
        """
        if self.status_feed is None or self.manifold is None:
            raise RuntimeError("Clients not initialized, call startup() first")

        updater = TargetUpdater(self.manifold, self.registry, config=self.config.updater)
        scanner = IncidentScanner(
            self.status_feed,
            self.manifold,
            self.registry,
            config=self.config.scanner,
        )

        tasks = [
            asyncio.create_task(updater.run(), name="updater"),
            asyncio.create_task(scanner.run(), name="scanner"),
        ]
        try:
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        finished = next(task for task in tasks if task in done)
        error = finished.exception()
        if error is not None:
            log.critical(
                "task_failed",
                task=finished.get_name(),
                error_type=type(error).__name__,
                error=str(error),
            )
            raise error
        log.info("task_finished", task=finished.get_name())


async def check_status(config: StatusFeedConfig | None = None) -> int:
    """One-shot status check: poll GitHub status once, print it, exit."""
    client = GitHubStatusClient(config=config or StatusFeedConfig())
    try:
        status = await client.get_incident_status()
    except StatusFeedError as e:
        log.error("status_check_failed", error=str(e))
        return 1
    finally:
        await client.close()

    print(f"indicator:   {status.indicator}")
    print(f"description: {status.description}")
    return 0


async def run(config: CalabiConfig) -> int:
    """Main async entry point. Returns the process exit code."""
    app = Calabi(config)
    try:
        await app.startup()
        await app.run()
    except Exception as e:
        log.info("calabi_exiting", exit_code=1, error_type=type(e).__name__, error=str(e))
        return 1
    finally:
        await app.shutdown()
    return 0


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Calabi: bets on GitHub incidents on Manifold")
    parser.add_argument("--log-level", default=None, help="Overrides LOG_LEVEL")
    parser.add_argument(
        "--check-status",
        action="store_true",
        help="Poll the GitHub status feed once, print it, and exit",
    )
    args = parser.parse_args()

    if args.check_status:
        setup_logging(log_level=args.log_level or "INFO")
        sys.exit(asyncio.run(check_status()))

    try:
        config = get_config()
    except ValidationError as e:
        setup_logging(log_level=args.log_level or "INFO")
        log.critical("config_invalid", msg="MANIFOLD_API_KEY must be set", error=str(e))
        sys.exit(1)

    setup_logging(log_level=args.log_level or config.log_level, json_output=config.log_json)
    sys.exit(asyncio.run(run(config)))


if __name__ == "__main__":
    main()
