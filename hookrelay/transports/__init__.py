"""Log transports and the fan-out that drives them."""

from hookrelay.transports.analytics import AnalyticsTransport
from hookrelay.transports.console import ConsoleTransport
from hookrelay.transports.error_reporting import ErrorReportingTransport
from hookrelay.transports.fanout import DeliveryResult, LogFanout, make_entry
from hookrelay.transports.protocol import Level, LogEntry, Transport

__all__ = [
    "AnalyticsTransport",
    "ConsoleTransport",
    "DeliveryResult",
    "ErrorReportingTransport",
    "Level",
    "LogEntry",
    "LogFanout",
    "Transport",
    "make_entry",
]
