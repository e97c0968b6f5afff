from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from mksyscall.errors import CapacityError
from mksyscall.model import Function, Param
from mksyscall.target import OSFamily, TargetProfile, needs_64bit_filler, pads_64bit_args

_LOGGER: logging.Logger = logging.getLogger(__name__)

DISPATCH_ARITIES: Tuple[int, ...] = (3, 6, 9)
ERRNO_REGISTER = "e1"
FILLER = "0"

CHECK_NONE = ""
CHECK_ERRNO = "errno"
CHECK_PLAN9 = "plan9"

TEMP_STRING = "string"
TEMP_SLICE = "slice"
TEMP_BOOL = "bool"


@dataclass(frozen=True)
class TempVar:
    kind: str
    name: str
    source: str
    # Where a string conversion failure goes; empty means it is dropped.
    error_var: str = ""


@dataclass(frozen=True)
class CallPlan:
    function: Function
    temps: Tuple[TempVar, ...]
    args: Tuple[str, ...]
    slot_count: int
    arity: int
    primitive: str
    captures: Tuple[str, ...]
    assignments: Tuple[Tuple[str, str], ...]
    error_check: str


def _split_64(name: str, profile: TargetProfile) -> List[str]:
    if not profile.splits_64bit:
        return [f"uintptr({name})"]
    high = f"uintptr({name}>>32)"
    low = f"uintptr({name})"
    return [high, low] if profile.big_endian else [low, high]


def marshal_param(
    fn: Function,
    index: int,
    param: Param,
    profile: TargetProfile,
    slots_so_far: int,
) -> Tuple[Optional[TempVar], List[str]]:
    """
    Lower one input parameter into dispatch argument slots.

    Returns the temp variable the parameter needs declared before the call
    (if any) and the slot expressions it occupies.
    """
    if param.is_pointer:
        return None, [f"uintptr(unsafe.Pointer({param.name}))"]

    if param.is_string:
        tmp = fn.temp_var(index)
        errvar = fn.error_name()
        if not errvar:
            _LOGGER.warning(
                "%s: %s uses string arguments, but has no error return", fn.origin, fn.name
            )
        return TempVar(TEMP_STRING, tmp, param.name, error_var=errvar), [
            f"uintptr(unsafe.Pointer({tmp}))"
        ]

    if param.is_slice:
        tmp = fn.temp_var(index)
        return TempVar(TEMP_SLICE, tmp, param.name), [
            f"uintptr({tmp})",
            f"uintptr(len({param.name}))",
        ]

    if param.type == "int64" and pads_64bit_args(profile.os_family):
        slots = [FILLER] if needs_64bit_filler(profile.os_family, fn.name) else []
        return None, slots + _split_64(param.name, profile)

    if param.is_64bit and profile.splits_64bit:
        slots = []
        # ARM passes 64-bit arguments in an (even, odd) register pair.
        if profile.is_arm and slots_so_far % 2 == 1:
            slots.append(FILLER)
        return None, slots + _split_64(param.name, profile)

    if param.is_bool:
        tmp = fn.temp_var(index)
        return TempVar(TEMP_BOOL, tmp, param.name), [f"uintptr({tmp})"]

    return None, [f"uintptr({param.name})"]


def arg_slots(fn: Function, profile: TargetProfile) -> Tuple[Tuple[TempVar, ...], Tuple[str, ...]]:
    temps: List[TempVar] = []
    slots: List[str] = []
    for index, param in enumerate(fn.params):
        tmp, param_slots = marshal_param(fn, index, param, profile, len(slots))
        if tmp is not None:
            temps.append(tmp)
        slots.extend(param_slots)
    return tuple(temps), tuple(slots)


def dispatch_arity(slot_count: int, *, where: str = "<string>") -> int:
    for arity in DISPATCH_ARITIES:
        if slot_count <= arity:
            return arity
    raise CapacityError(
        f"{where}: too many arguments to system call ({slot_count}, at most {DISPATCH_ARITIES[-1]})"
    )


def _uses_no_error_dispatch(fn: Function, profile: TargetProfile) -> bool:
    return not fn.has_error_return() and profile.os_family is OSFamily.GENERIC


def dispatch_primitive(fn: Function, profile: TargetProfile, arity: int) -> str:
    name = "Syscall" if fn.blocking else "RawSyscall"
    if _uses_no_error_dispatch(fn, profile):
        name += "NoError"
    if arity > DISPATCH_ARITIES[0]:
        name += str(arity)
    return name


def _convert_result(param: Param, reg: str) -> str:
    if param.is_bool:
        return f"{reg} != 0"
    if param.is_pointer:
        return f"({param.type})(unsafe.Pointer({reg}))"
    return f"{param.type}({reg})"


def plan_results(
    fn: Function, profile: TargetProfile
) -> Tuple[Tuple[str, ...], Tuple[Tuple[str, str], ...], str]:
    """
    Decide which result registers the dispatch call captures, how each
    return value is read back, and which failure check follows.
    """
    two_registers = _uses_no_error_dispatch(fn, profile)
    registers = ["r0", "r1"]
    if not fn.has_error_return() and not two_registers:
        registers.append("r2")

    captures = ["_", "_", "_"]
    assignments: List[Tuple[str, str]] = []
    check = CHECK_NONE
    next_reg = 0
    for p in fn.rets:
        if p.is_error:
            if profile.os_family is OSFamily.PLAN9:
                captures[0] = "r0"
                check = CHECK_PLAN9
            else:
                check = CHECK_ERRNO
            captures[2] = ERRNO_REGISTER
            continue

        if p.is_64bit and profile.splits_64bit:
            if next_reg + 2 > len(registers):
                raise CapacityError(
                    f"{fn.origin}: {fn.name}: not enough registers for 64-bit return {p.name!r}"
                )
            first, second = next_reg, next_reg + 1
            high, low = (first, second) if profile.big_endian else (second, first)
            captures[first] = registers[first]
            captures[second] = registers[second]
            assignments.append(
                (p.name, f"{p.type}({p.type}({registers[high]})<<32 | {p.type}({registers[low]}))")
            )
            next_reg += 2
            continue

        if next_reg >= len(registers):
            raise CapacityError(f"{fn.origin}: {fn.name}: not enough registers for return {p.name!r}")
        reg = registers[next_reg]
        captures[next_reg] = reg
        assignments.append((p.name, _convert_result(p, reg)))
        next_reg += 1

    if all(c == "_" for c in captures):
        return (), tuple(assignments), check
    if two_registers:
        return tuple(captures[:2]), tuple(assignments), check
    return tuple(captures), tuple(assignments), check


def plan_call(fn: Function, profile: TargetProfile) -> CallPlan:
    temps, slots = arg_slots(fn, profile)
    arity = dispatch_arity(len(slots), where=f"{fn.origin}: {fn.name}")
    primitive = dispatch_primitive(fn, profile, arity)
    captures, assignments, check = plan_results(fn, profile)
    _LOGGER.debug("%s: %s -> %s (%d slots)", fn.origin, fn.name, primitive, len(slots))
    return CallPlan(
        function=fn,
        temps=temps,
        args=slots + (FILLER,) * (arity - len(slots)),
        slot_count=len(slots),
        arity=arity,
        primitive=primitive,
        captures=captures,
        assignments=assignments,
        error_check=check,
    )
