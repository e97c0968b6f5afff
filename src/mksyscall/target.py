from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from typing import Callable, Dict, Optional


class OSFamily(enum.Enum):
    GENERIC = "generic"
    PLAN9 = "plan9"
    OPENBSD = "openbsd"
    NETBSD = "netbsd"
    DRAGONFLY = "dragonfly"


class Endianness(enum.Enum):
    BIG = "big-endian"
    LITTLE = "little-endian"


@dataclass(frozen=True)
class TargetProfile:
    word_width: int = 64
    endianness: Optional[Endianness] = None
    os_family: OSFamily = OSFamily.GENERIC
    is_arm: bool = False

    def __post_init__(self) -> None:
        if self.word_width not in (32, 64):
            raise ValueError(f"word width must be 32 or 64, got {self.word_width}")
        if self.word_width == 32 and self.endianness is None:
            raise ValueError("a 32-bit profile needs an endianness")
        if self.word_width == 64 and self.endianness is not None:
            raise ValueError("endianness only applies to 32-bit profiles")

    @property
    def splits_64bit(self) -> bool:
        return self.word_width == 32

    @property
    def big_endian(self) -> bool:
        return self.endianness is Endianness.BIG

    @classmethod
    def from_flags(
        cls,
        *,
        b32: bool = False,
        l32: bool = False,
        os_family: OSFamily = OSFamily.GENERIC,
        arm: bool = False,
    ) -> "TargetProfile":
        if b32 and l32:
            raise ValueError("-b32 and -l32 are mutually exclusive")
        if b32:
            return cls(32, Endianness.BIG, os_family, arm)
        if l32:
            return cls(32, Endianness.LITTLE, os_family, arm)
        return cls(64, None, os_family, arm)


# Families whose kernels take an explicit pad word before every 64-bit
# argument. A family may name calls whose kernel signature already carries
# the pad; those skip the inserted filler.
_NO_FILLER_CALLS: Dict[OSFamily, Callable[[str], bool]] = {
    OSFamily.OPENBSD: lambda name: False,
    OSFamily.NETBSD: lambda name: False,
    OSFamily.DRAGONFLY: re.compile(r"^extp(read|write)", re.IGNORECASE).match,
}


def pads_64bit_args(family: OSFamily) -> bool:
    return family in _NO_FILLER_CALLS


def needs_64bit_filler(family: OSFamily, func_name: str) -> bool:
    exempt = _NO_FILLER_CALLS.get(family)
    if exempt is None:
        return False
    return not exempt(func_name)
