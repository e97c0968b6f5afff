from __future__ import annotations

import re
from typing import Iterable, Iterator, List, Optional, Tuple

from mksyscall.errors import ParseError
from mksyscall.model import ERROR_NAME, MAX_RETURNS, Function, Param

# Longest prefix first so "//sysnb" is never read as "//sys" + "nb".
PREFIXES: Tuple[Tuple[str, bool], ...] = (
    ("//sys-nonblocking", False),
    ("//sysnb", False),
    ("//sys", True),
)

_RE_IDENT = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_RE_CALL_ID = re.compile(r"\s*=\s*([A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)?)$")
_RE_PACKAGE = re.compile(r"^package\s+([A-Za-z_][A-Za-z0-9_]*)\s*(?://.*)?$")


def _trim(s: str) -> str:
    return s.strip(" \t")


def match_prefix(line: str) -> Optional[Tuple[bool, str]]:
    text = _trim(line.rstrip("\r\n"))
    for prefix, blocking in PREFIXES:
        if not text.startswith(prefix):
            continue
        rest = text[len(prefix):]
        if rest[:1] in (" ", "\t"):
            return blocking, rest
    return None


def is_prototype(line: str) -> bool:
    return match_prefix(line) is not None


def parse_package_clause(line: str) -> Optional[str]:
    m = _RE_PACKAGE.match(_trim(line))
    return m.group(1) if m else None


def _extract_section(text: str, start: str, end: str, *, where: str) -> Tuple[str, str, str]:
    begin = text.find(start)
    if begin < 0:
        raise ParseError(f"{where}: expected {start!r} in {text!r}")
    depth = 0
    for i in range(begin, len(text)):
        ch = text[i]
        if ch == start:
            depth += 1
        elif ch == end:
            depth -= 1
            if depth == 0:
                return text[:begin], text[begin + 1:i], text[i + 1:]
    raise ParseError(f"{where}: unmatched {start!r} in {text!r}")


def _parse_param_list(body: str, *, where: str) -> Tuple[Param, ...]:
    body = _trim(body)
    if body == "":
        return ()
    params: List[Param] = []
    for element in body.split(","):
        tokens = element.split()
        if len(tokens) != 2:
            raise ParseError(
                f"{where}: could not extract function parameter from {_trim(element)!r}"
            )
        params.append(Param(tokens[0], tokens[1]))
    return tuple(params)


def _validate_returns(rets: Tuple[Param, ...], *, where: str) -> None:
    if len(rets) > MAX_RETURNS:
        raise ParseError(f"{where}: too many return values ({len(rets)}, at most {MAX_RETURNS})")
    errors = [r for r in rets if r.is_error]
    if len(errors) > 1:
        raise ParseError(f"{where}: only one error return value is allowed")
    for r in rets:
        if r.is_error and r.name != ERROR_NAME:
            raise ParseError(f"{where}: error return must be named {ERROR_NAME!r}, got {r.name!r}")
        if r.name == ERROR_NAME and not r.is_error:
            raise ParseError(f"{where}: return value {ERROR_NAME!r} must have type error")
    if errors and not rets[-1].is_error:
        raise ParseError(f"{where}: error return must be the last return value")


def parse_prototype(line: str, *, origin: str = "<string>") -> Function:
    matched = match_prefix(line)
    if matched is None:
        raise ParseError(f"{origin}: not a //sys declaration: {_trim(line)!r}")
    blocking, rest = matched
    rest = _trim(rest)
    where = f"{origin}: {rest!r}"

    call_id = ""
    m = _RE_CALL_ID.search(rest)
    if m:
        call_id = m.group(1)
        rest = rest[:m.start()]

    if "(" not in rest:
        raise ParseError(f"{where}: could not extract function name and parameters")
    name, params_body, tail = _extract_section(rest, "(", ")", where=where)
    name = _trim(name)
    if name == "":
        raise ParseError(f"{where}: missing function name")
    if not _RE_IDENT.match(name):
        raise ParseError(f"{where}: invalid function name {name!r}")
    params = _parse_param_list(params_body, where=where)

    rets: Tuple[Param, ...] = ()
    tail = _trim(tail)
    if tail:
        if not tail.startswith("("):
            raise ParseError(f"{where}: unexpected text {tail!r} after parameter list")
        _, rets_body, trailing = _extract_section(tail, "(", ")", where=where)
        if _trim(trailing):
            raise ParseError(f"{where}: unexpected text {_trim(trailing)!r} after return list")
        rets = _parse_param_list(rets_body, where=where)
    _validate_returns(rets, where=where)

    return Function(
        name=name,
        params=params,
        rets=rets,
        call_id=call_id,
        blocking=blocking,
        origin=origin,
    )


def scan_lines(lines: Iterable[str], *, source: str = "<string>") -> Iterator[Function]:
    for lineno, line in enumerate(lines, start=1):
        if is_prototype(line):
            yield parse_prototype(line, origin=f"{source}:{lineno}")
