"""
Configuration settings for the sharp-money signal engine.
Uses pydantic-settings for validation and environment variable loading.
"""

from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SignalSettings(BaseSettings):
    """Signal detection thresholds."""

    # ==========================================================================
    # Steam moves: rapid one-directional line movement inside a short window
    # ==========================================================================
    steam_window_seconds: float = 300.0     # 5 minute sliding window
    steam_spread_points: float = 2.0        # 2+ point spread move
    steam_total_points: float = 2.0         # 2+ point total move
    steam_moneyline_cents: float = 30.0     # 30+ cent moneyline swing

    # One strength step = this fraction of the trigger threshold
    # 0.5 with a 2.0 trigger: 2.0 pts = 2.0x (moderate), 2.5 pts = 2.5x (strong)
    steam_strength_unit: float = 0.5

    # ==========================================================================
    # Reverse line movement
    # ==========================================================================
    rlm_public_threshold_pct: float = 60.0  # Public majority needed
    rlm_min_move_points: float = 0.5       # Line must move at least this much

    # ==========================================================================
    # Line freeze: lopsided public, line refuses to move
    # ==========================================================================
    freeze_public_threshold_pct: float = 65.0
    freeze_tolerance_points: float = 0.5
    freeze_min_duration_seconds: float = 1800.0  # 30 minutes sustained

    # ==========================================================================
    # Money vs. ticket divergence
    # ==========================================================================
    whale_gap_pct: float = 10.0            # money% - public% on the same side
    syndicate_min_consecutive: int = 3     # persistent gap escalates to syndicate

    @field_validator("steam_strength_unit")
    @classmethod
    def _unit_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("steam_strength_unit must be positive")
        return v


class ScoringSettings(BaseSettings):
    """Sharp score aggregation weights."""

    base_score: float = 50.0

    steam_move_weight: float = 15.0
    reverse_line_weight: float = 12.0
    whale_bet_weight: float = 10.0
    syndicate_play_weight: float = 10.0
    line_freeze_weight: float = 8.0

    weak_multiplier: float = 0.5
    moderate_multiplier: float = 1.0
    strong_multiplier: float = 1.5

    confidence_base: float = 40.0
    confidence_per_type: float = 10.0


class MonitorSettings(BaseSettings):
    """Steam move monitor loop settings."""

    poll_interval_seconds: float = 30.0
    tail_horizon_multiplier: float = 2.0   # look back 2x the steam window
    max_snapshots_per_series: Optional[int] = 2000

    # JSON-lines snapshot file consumed by the runnable service
    snapshot_file: str = Field(default="data/snapshots.jsonl", description="Path to snapshot JSONL feed")
    status_interval_seconds: float = 300.0


class GuardrailSettings(BaseSettings):
    """Default responsible-betting guardrails."""

    max_loss_streak: int = 3
    lockout_hours: float = 24.0
    enable_auto_lockout: bool = True

    max_single_bet_pct: float = 5.0
    enable_bet_size_warnings: bool = True

    daily_loss_limit: float = 100.0
    session_time_limit_minutes: float = 180.0
    cool_down_after_loss_minutes: float = 30.0

    # Day boundary for the daily loss window
    timezone: str = "UTC"


class BankrollSettings(BaseSettings):
    """Bankroll and exposure limits."""

    bankroll: float = 1000.0
    starting_bankroll: float = 1000.0
    max_league_exposure_pct: float = 30.0
    max_single_bet_pct: float = 5.0
    max_total_exposure_pct: float = 25.0
    betting_days_per_month: int = 20


class AlertSettings(BaseSettings):
    """Discord alerting settings."""

    discord_webhook_url: str = Field(default="", description="Discord webhook URL")


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore"
    )

    # Logging
    log_level: str = "INFO"
    json_logs: bool = False

    # Sub-settings
    signals: SignalSettings = Field(default_factory=SignalSettings)
    scoring: ScoringSettings = Field(default_factory=ScoringSettings)
    monitor: MonitorSettings = Field(default_factory=MonitorSettings)
    guardrails: GuardrailSettings = Field(default_factory=GuardrailSettings)
    bankroll: BankrollSettings = Field(default_factory=BankrollSettings)
    alerts: AlertSettings = Field(default_factory=AlertSettings)


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get the global settings instance."""
    return settings


def reload_settings() -> Settings:
    """Reload settings from environment."""
    global settings
    settings = Settings()
    return settings
