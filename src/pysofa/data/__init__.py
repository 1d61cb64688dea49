"""Bundled configuration assets for pysofa."""
