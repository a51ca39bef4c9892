"""Booking cart, availability and back-office core for a home-cleaning business."""

__version__ = "1.0.0"
