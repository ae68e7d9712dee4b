"""Business-logic services for groundwork.

Ingestion lives in :mod:`groundwork.services.ingestion`; serving is split
across retrieval, context assembly, smart search and the completion proxy.
"""
