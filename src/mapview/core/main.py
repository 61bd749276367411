"""
Map binding scenario replay - Main Entry Point.

This is the CLI entry point that uses tyro for argument parsing.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Annotated

import tyro

from src.mapview.config.io import load_config, load_scenario
from src.mapview.core.replay import Notification, ScenarioRunner
from src.shared.exceptions import ConfigError

logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO") -> None:
    """
    Setup logging configuration.

    Parameters
    ----------
    level : str
        Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def print_notification(notification: Notification) -> None:
    print(json.dumps(notification.to_dict()))


def main(
    scenario: Annotated[Path, tyro.conf.Positional],
    log_level: str = "INFO",
    controlled: bool = True,
    config: Path | None = None,
    reuse_maps: bool | None = None,
) -> None:
    """
    Replay a map scenario on the simulated engine.

    Parameters
    ----------
    scenario : Path
        Scenario YAML (initial props and steps)
    log_level : str
        Logging level: DEBUG, INFO, WARNING, ERROR (default: INFO)
    controlled : bool
        Keep camera props declared and accept each proposal (default: True).
        With --no-controlled the camera props only seed the initial view.
    config : Path | None
        Binding config YAML overriding the scenario's own config section
    reuse_maps : bool | None
        Override the config's reuse_maps

    Examples
    --------
    Replay a drag in controlled mode:
        mapview-replay ./scenarios/drag.yaml

    Let the engine own the camera:
        mapview-replay ./scenarios/drag.yaml --no-controlled

    Debug logging:
        mapview-replay ./scenarios/drag.yaml --log-level DEBUG
    """
    setup_logging(log_level)

    try:
        loaded = load_scenario(scenario)
        if config is not None:
            loaded.config = load_config(config)
    except ConfigError as e:
        logger.error(f"Cannot load scenario: {e}")
        raise SystemExit(1) from e

    if reuse_maps is not None:
        loaded.config.reuse_maps = reuse_maps

    logger.info("=== Map Scenario Replay ===")
    logger.info(f"Scenario: {loaded.name} ({len(loaded.steps)} steps)")
    logger.info(f"Mode: {'controlled' if controlled else 'uncontrolled'}")

    runner = ScenarioRunner(loaded, controlled=controlled, on_notification=print_notification)
    asyncio.run(runner.run())

    for error in runner.errors:
        logger.warning(f"Reported: {error}")
    logger.info(f"Done: {len(runner.notifications)} notifications")


def cli() -> None:
    """CLI entry point (console script)."""
    tyro.cli(main)


if __name__ == "__main__":
    cli()
