"""hookrelay: messaging webhook relay with fan-out request logging."""

__version__ = "0.1.0"
