class ProviderError(RuntimeError):
    """A search provider answered, but not with something usable."""


class EmbeddingError(ProviderError):
    """The query embedding could not be produced."""


__all__ = ["ProviderError", "EmbeddingError"]
