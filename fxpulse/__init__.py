"""fxpulse: forex session clock, pair analytics, and a resilient market-data stream client."""

__version__ = "0.1.0"
