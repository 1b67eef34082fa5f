"""Speed Math trainer game core."""

__version__ = "1.0.0"
