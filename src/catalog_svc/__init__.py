"""Catalog service - shared observation catalogs with live collaboration."""

__version__ = "0.3.0"
