"""Build-time asset optimizer."""

__version__ = "0.3.0"
