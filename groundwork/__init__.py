"""groundwork: retrieval-augmented generation pipeline for a grounded chat assistant.

Ingestion (extract -> chunk -> embed -> store) and serving
(embed query -> hybrid retrieve -> assemble context -> stream completion)
share only the embedding provider and the document store schema.
"""

__version__ = "0.1.0"
