"""Internal implementation modules. Not part of the public API."""

from lingo_metrics._internal.cache import TimedCache
from lingo_metrics._internal.config import ConfigManager, Settings
from lingo_metrics._internal.dune_client import DuneAPIClient

__all__ = ["ConfigManager", "DuneAPIClient", "Settings", "TimedCache"]
