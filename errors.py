"""
Shared exceptions raised by the generation services and mapped to HTTP codes in routes.
"""


class NotFoundError(Exception):
    """A model, script or corpus entry does not exist (or lacks required data)."""


class CorpusRetrievalError(Exception):
    """Corpus retrieval cannot run for this model (no embedding, malformed embedding)."""
