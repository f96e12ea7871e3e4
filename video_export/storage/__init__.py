"""Object storage backends."""

from .object_store import HttpBlobStore, LocalObjectStore, ObjectStore, create_object_store

__all__ = ["HttpBlobStore", "LocalObjectStore", "ObjectStore", "create_object_store"]
