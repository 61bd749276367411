"""
YAML import/export for binding configuration and replay scenarios.

A scenario describes a mount and a sequence of steps replayed against it::

    config:                  # optional MapViewConfig fields
      reuse_maps: false
    props:                   # initial property set
      longitude: -122.4
      latitude: 37.8
      zoom: 14
    steps:
      - action: interact     # engine-driven gesture
        kind: drag
        zoom: 15
      - action: set_props    # merged into the current props
        props: {zoom: 15}
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from src.mapview.config.settings import MapViewConfig
from src.shared.exceptions import ConfigError

logger = logging.getLogger(__name__)


SCENARIO_ACTIONS = ("set_props", "interact", "pan", "load_style", "call", "unmount", "remount")


@dataclass
class ScenarioStep:
    """One replayed step: an action name plus its parameters."""

    action: str
    params: dict[str, Any] = field(default_factory=dict)


@dataclass
class Scenario:
    """A mount and the steps replayed against it."""

    props: dict[str, Any] = field(default_factory=dict)
    steps: list[ScenarioStep] = field(default_factory=list)
    config: MapViewConfig = field(default_factory=MapViewConfig)
    name: str = "scenario"


def _read_yaml(path: str | Path) -> dict[str, Any]:
    input_path = Path(path)
    if not input_path.exists():
        raise ConfigError("File not found", config_path=str(input_path))
    try:
        with open(input_path, "r") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML: {e}", config_path=str(input_path)) from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError("Top-level YAML value must be a mapping", config_path=str(input_path))
    return data


def load_config(path: str | Path) -> MapViewConfig:
    """
    Load a MapViewConfig from YAML.

    Raises
    ------
    ConfigError
        If the file is missing, not valid YAML or has unknown fields
    """
    data = _read_yaml(path)
    try:
        config = MapViewConfig.from_dict(data)
    except ConfigError as e:
        raise ConfigError(str(e), config_path=str(path)) from e
    except (TypeError, AttributeError) as e:
        raise ConfigError(f"Invalid config: {e}", config_path=str(path)) from e
    logger.info(f"Loaded config from {path}")
    return config


def save_config(config: MapViewConfig, path: str | Path) -> Path:
    """Write a MapViewConfig to YAML, creating parent directories."""
    output_path = Path(path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        yaml.dump(config.to_dict(), f, default_flow_style=False, sort_keys=False)
    logger.info(f"Saved config to {output_path}")
    return output_path


def _parse_step(index: int, raw: Any, path: str | Path) -> ScenarioStep:
    if not isinstance(raw, dict) or "action" not in raw:
        raise ConfigError(f"Step {index} must be a mapping with an 'action'", str(path), "steps")
    params = dict(raw)
    action = params.pop("action")
    if action not in SCENARIO_ACTIONS:
        raise ConfigError(f"Step {index} has unknown action {action!r}", str(path), "steps")
    return ScenarioStep(action=action, params=params)


def load_scenario(path: str | Path) -> Scenario:
    """
    Load a replay scenario from YAML.

    Raises
    ------
    ConfigError
        If the file or any step is invalid
    """
    data = _read_yaml(path)
    props = data.get("props") or {}
    if not isinstance(props, dict):
        raise ConfigError("props must be a mapping", str(path), "props")
    steps_data = data.get("steps") or []
    if not isinstance(steps_data, list):
        raise ConfigError("steps must be a list", str(path), "steps")

    try:
        config = MapViewConfig.from_dict(data.get("config") or {})
    except ConfigError as e:
        raise ConfigError(str(e), config_path=str(path)) from e

    scenario = Scenario(
        props=props,
        steps=[_parse_step(i, raw, path) for i, raw in enumerate(steps_data)],
        config=config,
        name=data.get("name") or Path(path).stem,
    )
    logger.info(f"Loaded scenario '{scenario.name}' ({len(scenario.steps)} steps) from {path}")
    return scenario


__all__ = [
    "SCENARIO_ACTIONS",
    "Scenario",
    "ScenarioStep",
    "load_config",
    "load_scenario",
    "save_config",
]
