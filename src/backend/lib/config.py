from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar, dataclass_transform

import msgspec

if TYPE_CHECKING:
    from typing import Any


__all__ = ("MASK", "Struct")


MASK = "********"


@dataclass_transform(field_specifiers=(msgspec.field,), frozen_default=True)
class Struct(msgspec.Struct, frozen=True, forbid_unknown_fields=True):
    """Base struct for configuration sections.

    Unknown keys are rejected so that a typo in ``app.toml`` fails the
    startup instead of being silently ignored. Fields named in ``secret_fields``
    are masked by :meth:`to_dict` when ``redact`` is set.
    """

    secret_fields: ClassVar[frozenset[str]] = frozenset()

    def to_dict(self, *, redact: bool = False) -> dict[str, Any]:
        """Convert the section, and any nested sections, to a dictionary."""
        data: dict[str, Any] = msgspec.to_builtins(self)
        if redact:
            self._redact(data)
        return data

    def _redact(self, data: dict[str, Any]) -> None:
        for name in self.__struct_fields__:
            value = getattr(self, name)
            if isinstance(value, Struct):
                value._redact(data[name])
            elif name in self.secret_fields and value is not None:
                data[name] = MASK
