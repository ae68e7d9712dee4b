"""Shared utilities: error hierarchy, logging setup, text normalization."""
