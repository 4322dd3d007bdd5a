"""Booking scheduling and concurrency-safe reservation engine."""

__version__ = "0.1.0"
