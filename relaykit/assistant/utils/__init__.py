"""
Utility components for the assistant.

This module provides the background worker pool and the external server
configuration loader and watcher.
"""

from .worker_pool import BackgroundWorkerPool
from .config_loader import ExternalServersConfigLoader, FileConfigurationSource
from .config_watcher import ConfigFileWatcher

__all__ = [
    "BackgroundWorkerPool",
    "ExternalServersConfigLoader",
    "FileConfigurationSource",
    "ConfigFileWatcher",
]
