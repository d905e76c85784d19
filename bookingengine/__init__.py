"""
bookingengine - Availability and conflict checking for appointment bookings.
"""

__version__ = "0.1.0"
