"""Tour availability and slot-booking service."""

__version__ = "0.1.0"
