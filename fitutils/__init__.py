"""Export and rename FIT, GPX and TCX activity files."""

__version__ = "0.1.0"
