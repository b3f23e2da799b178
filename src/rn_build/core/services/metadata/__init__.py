from .core import MetadataError, MetadataResolver, counter_url, read_local_facts

__all__ = [
    "MetadataError",
    "MetadataResolver",
    "counter_url",
    "read_local_facts",
]
