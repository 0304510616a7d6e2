"""Pydantic configuration models for all system settings."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, model_validator


class BatteryConfig(BaseModel):
    """Battery chemistry limits used by metrics derivation.

    The voltage window maps battery voltage linearly onto a 0-100% level.
    Defaults describe a 12 V pack (10.8 V empty, 14.4 V full). Earlier
    firmware revisions used 9.0 V as the empty voltage; set ``voltage_min``
    to 9.0 to reproduce their readings.
    """

    voltage_min: float = 10.8
    voltage_max: float = 14.4
    critical_level_pct: float = Field(15.0, ge=0.0, le=100.0)
    danger_temp_c: float = 45.0  # battery_danger above this
    unhealthy_temp_c: float = 50.0  # system_healthy requires below this
    plausible_voltage_min: float = 0.0  # exclusive
    plausible_voltage_max: float = 20.0  # exclusive

    @model_validator(mode="after")
    def _check_voltage_window(self) -> "BatteryConfig":
        if self.voltage_max <= self.voltage_min:
            raise ValueError("voltage_max must be greater than voltage_min")
        if self.plausible_voltage_max <= self.plausible_voltage_min:
            raise ValueError("plausible_voltage_max must be greater than plausible_voltage_min")
        return self


class MetricsConfig(BaseModel):
    efficiency_epsilon_w: float = Field(1.0, ge=0.0)  # load at or below this = 0% efficiency


class HistoryConfig(BaseModel):
    capacity: int = Field(50, ge=24, le=50)
    persist: bool = True  # restore the trend window across restarts


class InsightsConfig(BaseModel):
    evaluation_interval_seconds: int = 30
    min_history_points: int = Field(5, ge=1, le=50)
    profile: Literal["simple", "extended"] = "simple"
    max_insights_simple: int = Field(4, ge=4, le=6)
    max_insights_extended: int = Field(6, ge=4, le=6)
    timezone: str = "Africa/Lagos"  # IANA tz for hour-of-day rules

    @property
    def max_insights(self) -> int:
        if self.profile == "extended":
            return self.max_insights_extended
        return self.max_insights_simple


class PredictorConfig(BaseModel):
    enabled: bool = True
    model_path: str = "insight_model.joblib"
    retrain_confidence_threshold: float = Field(70.0, ge=0.0, le=100.0)
    timeout_seconds: float = 5.0
    learning_rate: float = 0.05
    bootstrap_samples_per_class: int = 60
    random_seed: int = 42
    # Minimum confidence before a predicted class is surfaced as an insight
    battery_drain_threshold: float = 75.0
    high_consumption_threshold: float = 65.0
    reduced_solar_threshold: float = 70.0
    optimal_threshold: float = 80.0


class TelemetryConfig(BaseModel):
    poll_interval_seconds: int = 10
    sample_path: str = "telemetry.json"  # latest sample written by the device bridge
    stale_max_age_seconds: int = 120


class WeatherProviderConfig(BaseModel):
    type: str = "openmeteo"
    update_interval_seconds: int = 3600
    latitude: float = 6.5244
    longitude: float = 3.3792
    timeout_seconds: float = 30.0


class ProvidersConfig(BaseModel):
    weather: WeatherProviderConfig = WeatherProviderConfig()


class ResilienceConfig(BaseModel):
    max_consecutive_failures: int = 3


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: Literal["json", "console"] = "json"
    file: str = ""  # empty = stdout only; the file is always JSON
    max_bytes: int = Field(5_000_000, ge=0)  # 0 disables rotation
    backup_count: int = Field(3, ge=0)
    levels: dict[str, str] = Field(default_factory=dict)  # per-logger overrides


class DBConfig(BaseModel):
    path: str = "power_insight.db"


class AppConfig(BaseModel):
    """Root configuration model containing all system settings."""

    battery: BatteryConfig = BatteryConfig()
    metrics: MetricsConfig = MetricsConfig()
    history: HistoryConfig = HistoryConfig()
    insights: InsightsConfig = InsightsConfig()
    predictor: PredictorConfig = PredictorConfig()
    telemetry: TelemetryConfig = TelemetryConfig()
    providers: ProvidersConfig = ProvidersConfig()
    resilience: ResilienceConfig = ResilienceConfig()
    logging: LoggingConfig = LoggingConfig()
    db: DBConfig = DBConfig()
