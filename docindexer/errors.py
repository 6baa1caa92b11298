from __future__ import annotations


class DocIndexerError(Exception):
  """Base class for docindexer failures."""


class ConfigError(DocIndexerError):
  """Required configuration is missing or malformed."""


class EmbeddingError(DocIndexerError):
  """The embeddings endpoint failed or returned an unusable payload."""
