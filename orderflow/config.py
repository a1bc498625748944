from __future__ import annotations

import os
from typing import Literal, Optional

import yaml
from pydantic import BaseModel


class ZeebeConfig(BaseModel):
    """Connection settings for a Camunda 8 / Zeebe cluster."""

    address: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    audience: str = "zeebe.camunda.io"
    oauth_url: str = "https://login.cloud.camunda.io/oauth/token"
    insecure: bool = False


class EngineConfig(BaseModel):
    """Orchestration engine settings."""

    backend: Literal["inmemory", "zeebe"] = "inmemory"
    zeebe: ZeebeConfig = ZeebeConfig()


class StorefrontConfig(BaseModel):
    """Where workflow status updates are posted."""

    base_url: str = "http://localhost:9000"
    timeout: float = 5.0
    retries: int = 3


class SlackConfig(BaseModel):
    """Slack incoming webhook settings. No webhook disables notifications."""

    webhook_url: Optional[str] = None
    admin_url: str = "http://localhost:9000/app"
    timeout: float = 5.0


class SimulationConfig(BaseModel):
    """Delays (seconds) and odds used by the simulated task work."""

    payment_delay: float = 2.0
    inventory_check_delay: float = 0.5
    reservation_delay: float = 1.0
    inventory_processing_delay: float = 1.5
    notification_delay: float = 1.5
    inventory_pass_rate: float = 0.95


class WorkerConfig(BaseModel):
    """Job activation settings for task workers."""

    name: str = "orderflow-worker"
    max_jobs: int = 32
    job_timeout_ms: int = 60_000


class OrderflowConfig(BaseModel):
    """Top-level configuration model."""

    engine: EngineConfig = EngineConfig()
    storefront: StorefrontConfig = StorefrontConfig()
    slack: SlackConfig = SlackConfig()
    simulation: SimulationConfig = SimulationConfig()
    worker: WorkerConfig = WorkerConfig()


_ENV_OVERRIDES = {
    "ORDERFLOW_ENGINE": ("engine", "backend"),
    "ZEEBE_ADDRESS": ("engine", "zeebe", "address"),
    "ZEEBE_CLIENT_ID": ("engine", "zeebe", "client_id"),
    "ZEEBE_CLIENT_SECRET": ("engine", "zeebe", "client_secret"),
    "ZEEBE_TOKEN_AUDIENCE": ("engine", "zeebe", "audience"),
    "CAMUNDA_OAUTH_URL": ("engine", "zeebe", "oauth_url"),
    "MEDUSA_BACKEND_URL": ("storefront", "base_url"),
    "SLACK_WEBHOOK_URL": ("slack", "webhook_url"),
    "SLACK_ADMIN_URL": ("slack", "admin_url"),
}


def _apply_env_overrides(config: OrderflowConfig) -> None:
    for env_var, path in _ENV_OVERRIDES.items():
        value = os.getenv(env_var)
        if not value:
            continue
        target = config
        for attr in path[:-1]:
            target = getattr(target, attr)
        setattr(target, path[-1], value)


def load_config(path: Optional[str] = None) -> OrderflowConfig:
    """Load configuration from YAML file and the environment.

    Args:
        path: Optional path to config file. Falls back to ORDERFLOW_CONFIG env
            variable or 'config.yaml' in the current directory.

    Environment variables such as ``ZEEBE_ADDRESS``, ``MEDUSA_BACKEND_URL`` and
    ``SLACK_WEBHOOK_URL`` take precedence over values from the file.
    """

    config_path = path or os.getenv("ORDERFLOW_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = OrderflowConfig(**data)
    else:
        config = OrderflowConfig()

    _apply_env_overrides(config)
    return config
