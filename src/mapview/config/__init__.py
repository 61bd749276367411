"""Configuration module for the map binding."""

from src.mapview.config.global_settings import (
    apply_global_settings,
    load_rtl_text_plugin,
    reset_global_settings,
)
from src.mapview.config.io import Scenario, ScenarioStep, load_config, load_scenario, save_config
from src.mapview.config.settings import GlobalSettings, MapViewConfig


__all__ = [
    "GlobalSettings",
    "MapViewConfig",
    "Scenario",
    "ScenarioStep",
    "apply_global_settings",
    "load_config",
    "load_rtl_text_plugin",
    "load_scenario",
    "reset_global_settings",
    "save_config",
]
