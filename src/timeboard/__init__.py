"""Timeboard - team time-tracking dashboard engine."""

__version__ = "0.4.0"
