"""Pydantic configuration models for the telemetry client."""

from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional


class BackendConfig(BaseModel):
    """Remote metrics backend location and endpoint paths."""
    base_url: str = "http://localhost:8000"
    api_prefix: str = "/api/v1"
    health_path: str = "/health"
    metrics_path: str = "/metrics/current/"
    summary_path: str = "/metrics/summary/"
    login_path: str = "/auth/auth/login"
    current_user_path: str = "/auth/auth/me"
    history_path: str = "/metrics/"
    collect_path: str = "/metrics/collect/"
    network_interfaces_path: str = "/metrics/network-interfaces/"
    current_network_path: str = "/metrics/network-interfaces/current/"
    processes_path: str = "/system/processes"
    connections_path: str = "/system/network"
    services_path: str = "/system/services"
    collect_all_path: str = "/system/collect-all"

    @field_validator('base_url')
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate URL format."""
        if not v.startswith(('http://', 'https://')):
            raise ValueError('URL must start with http:// or https://')
        return v.rstrip('/')

    def api_path(self, path: str) -> str:
        """Prefix an API-relative path with the versioned API prefix."""
        return f"{self.api_prefix.rstrip('/')}{path}"


class TimeoutsConfig(BaseModel):
    """Deadline in seconds for each timeout tier."""
    health_seconds: float = Field(default=8.0, gt=0)
    bulk_metrics_seconds: float = Field(default=30.0, gt=0)
    default_seconds: float = Field(default=15.0, gt=0)


class PollingConfig(BaseModel):
    """Metrics polling cadence and source selection."""
    mode: str = "live"
    interval_seconds: float = Field(default=5.0, gt=0)
    enabled: bool = True
    failure_threshold: int = Field(default=3, ge=1)

    @field_validator('mode')
    @classmethod
    def validate_mode(cls, v: str) -> str:
        """Accept only the two acquisition modes."""
        v = v.strip().lower()
        if v not in ('live', 'simulated'):
            raise ValueError("mode must be 'live' or 'simulated'")
        return v


class HealthProbeConfig(BaseModel):
    """Liveness probe cadence."""
    enabled: bool = True
    interval_seconds: float = Field(default=30.0, gt=0)


class AuthConfig(BaseModel):
    """Credential persistence and optional login on startup."""
    token_file: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None

    @model_validator(mode='after')
    def password_requires_username(self) -> 'AuthConfig':
        """A password without a username cannot be submitted."""
        if self.password and not self.username:
            raise ValueError('auth.password requires auth.username')
        return self


class SimulationConfig(BaseModel):
    """Synthetic data generator settings."""
    seed: Optional[int] = None


class TelemetrySystemConfig(BaseModel):
    """Root configuration model for the telemetry client."""
    backend: BackendConfig = Field(default_factory=BackendConfig)
    timeouts: TimeoutsConfig = Field(default_factory=TimeoutsConfig)
    polling: PollingConfig = Field(default_factory=PollingConfig)
    health_probe: HealthProbeConfig = Field(default_factory=HealthProbeConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    simulation: SimulationConfig = Field(default_factory=SimulationConfig)
