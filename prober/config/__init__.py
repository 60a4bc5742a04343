"""Configuration module — service settings."""

from prober.config.settings import ProberSettings

__all__ = [
    "ProberSettings",
]
