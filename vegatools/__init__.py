"""Building blocks for load testing, event streaming and text views of a trading network."""

__version__ = "0.1.0"