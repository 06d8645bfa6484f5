"""Per-site dive and snorkel condition scores from wind and swell forecasts."""

__version__ = "0.1.0"
