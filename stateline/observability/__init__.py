"""Logging and metrics for stateline."""

from stateline.observability.logging import get_logger, setup_logging

__all__ = ["get_logger", "setup_logging"]
