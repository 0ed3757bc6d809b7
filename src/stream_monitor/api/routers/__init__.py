from . import dlq, streams

__all__ = ["dlq", "streams"]
