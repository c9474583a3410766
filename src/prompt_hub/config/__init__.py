"""Configuration management for the prompt hub."""

from .settings import AppSettings, Provider, SyncConfig

__all__ = ["AppSettings", "Provider", "SyncConfig"]
