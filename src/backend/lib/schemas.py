from __future__ import annotations

import msgspec

__all__ = ("Struct",)


# Structs holding containers (dicts of checks, lists of rows) must opt back
# in with gc=True, the scalar only ones are safe without it.
# Read this: https://jcristharif.com/msgspec/structs.html#disabling-garbage-collection-advanced
class Struct(msgspec.Struct, gc=False, rename="camel", omit_defaults=True):
    """Base struct for response payloads, rendered with camelCase keys."""
