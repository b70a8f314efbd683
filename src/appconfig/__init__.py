"""App Configuration client library."""

__version__ = "0.1.0"

import logging

from .auth import Authenticator, IamAuthenticator
from .cache import ConfigCache
from .channel import ChannelState, LiveUpdateChannel
from .client import AppConfiguration
from .evaluator import evaluate_feature, evaluate_property, rollout_bucket
from .exceptions import AppConfigError, AppConfigErrorCodes, RetryError
from .fetcher import RemoteConfigFetcher
from .logger import new_logger, set_debug
from .models import (
    Condition,
    DataType,
    Feature,
    Operator,
    Property,
    Segment,
    SegmentRule,
    Snapshot,
)
from .notifier import ChangeNotifier
from .retry import RetryConfig, with_retry
from .settings import ClientSettings, RetrySettings, load_settings
from .store import LocalSnapshotStore
from .sync import SyncOrchestrator, SyncState
from .urls import UrlBuilder

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "AppConfigError",
    "AppConfigErrorCodes",
    "AppConfiguration",
    "Authenticator",
    "ChangeNotifier",
    "ChannelState",
    "ClientSettings",
    "Condition",
    "ConfigCache",
    "DataType",
    "Feature",
    "IamAuthenticator",
    "LiveUpdateChannel",
    "LocalSnapshotStore",
    "Operator",
    "Property",
    "RemoteConfigFetcher",
    "RetryConfig",
    "RetryError",
    "RetrySettings",
    "Segment",
    "SegmentRule",
    "Snapshot",
    "SyncOrchestrator",
    "SyncState",
    "UrlBuilder",
    "evaluate_feature",
    "evaluate_property",
    "load_settings",
    "new_logger",
    "rollout_bucket",
    "set_debug",
    "with_retry",
]
