"""Ride Match - Ride-share matching engine"""

__version__ = "1.0.0"
