from plugins.resources.vectorize_index.resource import VectorizeIndexPlugin

__all__ = ["VectorizeIndexPlugin"]
