"""
DeltaMaps Exceptions
====================

Errors raised by delta collections. Mutations on live collections never
fail: deleting an absent key simply reports ``False``.
"""


class DeltaMapError(Exception):
    """Base class for errors raised by delta collections."""

    pass


class CollectionDestroyedError(DeltaMapError):
    """Raised when a destroyed collection is mutated."""

    pass
