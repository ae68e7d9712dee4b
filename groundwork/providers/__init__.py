"""Concrete adapters for the interfaces in :mod:`groundwork.interfaces`."""
