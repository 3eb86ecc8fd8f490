"""Image library with an asynchronous embedding pipeline and hybrid search."""

__version__ = "0.3.0"
