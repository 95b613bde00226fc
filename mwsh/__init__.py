"""mwsh — check whether the URLs in a browser bookmark export are still alive."""

__version__ = "0.1.0"
