from __future__ import annotations

import re
from dataclasses import dataclass
from functools import cached_property
from typing import Dict, Tuple

ERROR_TYPE = "error"
ERROR_NAME = "err"
MAX_RETURNS = 3

_INT64_TYPES = ("int64", "uint64")
_RE_CAMEL_BOUNDARY = re.compile(r"([a-z])([A-Z])")


def derive_call_id(func_name: str) -> str:
    return _RE_CAMEL_BOUNDARY.sub(r"\1_\2", "SYS_" + func_name).upper()


@dataclass(frozen=True)
class Param:
    name: str
    type: str

    @property
    def is_error(self) -> bool:
        return self.type == ERROR_TYPE

    @property
    def is_pointer(self) -> bool:
        return self.type.startswith("*")

    @property
    def is_slice(self) -> bool:
        return self.type.startswith("[]")

    @property
    def is_string(self) -> bool:
        return self.type == "string"

    @property
    def is_bool(self) -> bool:
        return self.type == "bool"

    @property
    def is_64bit(self) -> bool:
        return self.type in _INT64_TYPES

    @property
    def needs_temp(self) -> bool:
        return self.is_string or self.is_slice or self.is_bool

    def decl(self) -> str:
        return f"{self.name} {self.type}"


@dataclass(frozen=True)
class Function:
    """
    One parsed prototype.

    Temp variables are identified by the rank of their parameter among the
    parameters that need one, in declaration order, so the same input always
    yields the same `_pN` names no matter how often or in which order the
    engine asks for them.
    """

    name: str
    params: Tuple[Param, ...]
    rets: Tuple[Param, ...] = ()
    call_id: str = ""
    blocking: bool = True
    origin: str = "<string>"

    def __post_init__(self) -> None:
        if not self.call_id:
            object.__setattr__(self, "call_id", derive_call_id(self.name))

    def has_error_return(self) -> bool:
        return any(r.is_error for r in self.rets)

    def error_name(self) -> str:
        for r in self.rets:
            if r.is_error:
                return r.name
        return ""

    @cached_property
    def _temp_slots(self) -> Dict[int, int]:
        slots: Dict[int, int] = {}
        for index, p in enumerate(self.params):
            if p.needs_temp:
                slots[index] = len(slots)
        return slots

    def temp_slot(self, index: int) -> int:
        try:
            return self._temp_slots[index]
        except KeyError:
            raise ValueError(
                f"{self.name}: parameter #{index} does not take a temp variable"
            ) from None

    def temp_var(self, index: int) -> str:
        return f"_p{self.temp_slot(index)}"

