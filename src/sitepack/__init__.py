"""Static-site build pipeline with offline packaging."""

__version__ = "0.1.0"
