"""Pipeline snapshot analytics: stage history reconstruction and trend reports."""

__version__ = "0.1.0"
