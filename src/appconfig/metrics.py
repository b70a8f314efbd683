"""OpenTelemetry 同期メトリクス定義"""

from __future__ import annotations

from opentelemetry import metrics

from . import __version__

_meter = metrics.get_meter("appconfig", version=__version__)

refresh_total = _meter.create_counter(
    name="appconfig_refresh_total",
    description="Total number of successful configuration refreshes",
    unit="1",
)

refresh_errors_total = _meter.create_counter(
    name="appconfig_refresh_errors_total",
    description="Total number of failed configuration refreshes",
    unit="1",
)

reconnect_total = _meter.create_counter(
    name="appconfig_reconnect_total",
    description="Total number of live update channel reconnect attempts",
    unit="1",
)

channel_signals_total = _meter.create_counter(
    name="appconfig_channel_signals_total",
    description="Total number of change signals received on the live update channel",
    unit="1",
)
