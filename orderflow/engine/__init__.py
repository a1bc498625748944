"""Engine factory and initialization."""

from __future__ import annotations

import os
from typing import Optional

from ..config import OrderflowConfig, load_config
from .base import BaseEngine
from .inmemory import InMemoryEngine


def get_engine(
    backend: Optional[str] = None, config: Optional[OrderflowConfig] = None
) -> BaseEngine:
    """Factory function to get the configured engine client."""

    config = config or load_config()
    backend = (
        backend or os.getenv("ORDERFLOW_ENGINE") or config.engine.backend
    ).lower()

    if backend == "inmemory":
        return InMemoryEngine()
    elif backend == "zeebe":
        from .zeebe import ZeebeEngine

        return ZeebeEngine(config.engine.zeebe, worker=config.worker)
    else:
        raise ValueError(f"Unsupported engine backend: {backend}")


__all__ = ["BaseEngine", "InMemoryEngine", "get_engine"]
