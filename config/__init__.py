"""Sharpline settings (pydantic-settings, loaded from env and .env)."""

from config.settings import (
    AlertSettings,
    BankrollSettings,
    GuardrailSettings,
    MonitorSettings,
    ScoringSettings,
    Settings,
    SignalSettings,
    get_settings,
    reload_settings,
    settings,
)

__all__ = [
    "settings",
    "Settings",
    "SignalSettings",
    "ScoringSettings",
    "MonitorSettings",
    "GuardrailSettings",
    "BankrollSettings",
    "AlertSettings",
    "get_settings",
    "reload_settings",
]
