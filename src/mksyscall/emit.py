from __future__ import annotations

import subprocess
from dataclasses import dataclass
from typing import List, Sequence

from mksyscall.abi import (
    CHECK_ERRNO,
    CHECK_PLAN9,
    ERRNO_REGISTER,
    TEMP_BOOL,
    TEMP_SLICE,
    TEMP_STRING,
    CallPlan,
    TempVar,
    plan_call,
)
from mksyscall.errors import FormatError
from mksyscall.model import Function
from mksyscall.target import TargetProfile

GENERATED_NOTICE = "// Code generated by the command above; see README.md. DO NOT EDIT."
FUNC_BANNER = "// THIS FILE IS GENERATED BY THE COMMAND AT THE TOP; DO NOT EDIT"

# Packages that define the dispatch primitives and helpers themselves.
_SELF_CONTAINED_PACKAGES = ("unix", "syscall")
_BASE_IMPORTS = ("syscall", "unsafe")


@dataclass(frozen=True)
class EmitOptions:
    package: str = "unix"
    command_line: str = "mksyscall"
    tags: str = ""
    trace: bool = False

    @property
    def qualifier(self) -> str:
        return "" if self.package in _SELF_CONTAINED_PACKAGES else "syscall."


def imports_for(package: str) -> List[str]:
    wanted = set(_BASE_IMPORTS)
    wanted.discard(package)
    return sorted(wanted)


def build_tag_lines(tags: str) -> List[str]:
    groups = [[t for t in group.split(",") if t] for group in tags.split()]
    groups = [g for g in groups if g]
    if not groups:
        return []
    terms = []
    for g in groups:
        expr = " && ".join(g)
        if len(g) > 1 and len(groups) > 1:
            expr = f"({expr})"
        terms.append(expr)
    plus = " ".join(",".join(g) for g in groups)
    return [f"//go:build {' || '.join(terms)}", f"// +build {plus}"]


def _render_temp(tmp: TempVar, qualifier: str) -> List[str]:
    if tmp.kind == TEMP_STRING:
        errvar = tmp.error_var or "_"
        lines = [
            f"var {tmp.name} *byte",
            f"{tmp.name}, {errvar} = {qualifier}BytePtrFromString({tmp.source})",
        ]
        if tmp.error_var:
            lines += [f"if {tmp.error_var} != nil {{", "\treturn", "}"]
        return lines
    if tmp.kind == TEMP_SLICE:
        return [
            f"var {tmp.name} unsafe.Pointer",
            f"if len({tmp.source}) > 0 {{",
            f"\t{tmp.name} = unsafe.Pointer(&{tmp.source}[0])",
            "} else {",
            f"\t{tmp.name} = unsafe.Pointer(&_zero)",
            "}",
        ]
    if tmp.kind == TEMP_BOOL:
        return [
            f"var {tmp.name} uint32",
            f"if {tmp.source} {{",
            f"\t{tmp.name} = 1",
            "}",
        ]
    raise ValueError(f"unknown temp kind {tmp.kind!r}")


def _trace_statement(fn: Function) -> str:
    parts = [f'"SYSCALL: {fn.name}("']
    for i, p in enumerate(fn.params):
        parts += [f'"{", " if i else ""}{p.name}="', p.name]
    parts.append('") ("')
    for i, r in enumerate(fn.rets):
        parts += [f'"{", " if i else ""}{r.name}="', r.name]
    parts.append('")\\n"')
    return f"print({', '.join(parts)})"


def render_function(plan: CallPlan, opts: EmitOptions) -> str:
    fn = plan.function
    params = ", ".join(p.decl() for p in fn.params)
    rets = ", ".join(r.decl() for r in fn.rets)
    results = f" ({rets})" if rets else ""

    body: List[str] = []
    for tmp in plan.temps:
        body.extend(_render_temp(tmp, opts.qualifier))

    call = f"{opts.qualifier}{plan.primitive}({fn.call_id}, {', '.join(plan.args)})"
    if plan.captures:
        body.append(f"{', '.join(plan.captures)} := {call}")
    else:
        body.append(call)

    for name, expr in plan.assignments:
        body.append(f"{name} = {expr}")

    errvar = fn.error_name()
    if plan.error_check == CHECK_PLAN9:
        body += ["if int32(r0) == -1 {", f"\t{errvar} = {ERRNO_REGISTER}", "}"]
    elif plan.error_check == CHECK_ERRNO:
        body += [f"if {ERRNO_REGISTER} != 0 {{", f"\t{errvar} = errnoErr({ERRNO_REGISTER})", "}"]

    if opts.trace:
        body.append(_trace_statement(fn))
    body.append("return")

    lines = [FUNC_BANNER, "", f"func {fn.name}({params}){results} {{"]
    lines.extend(f"\t{line}" for line in body)
    lines.append("}")
    return "\n".join(lines)


def render_file(plans: Sequence[CallPlan], opts: EmitOptions) -> str:
    out: List[str] = []
    out.append(f"// {opts.command_line}")
    out.append(GENERATED_NOTICE)
    out.append("")

    tag_lines = build_tag_lines(opts.tags)
    if tag_lines:
        out.extend(tag_lines)
        out.append("")

    out.append(f"package {opts.package}")
    out.append("")

    imports = imports_for(opts.package)
    out.append("import (")
    out.extend(f'\t"{imp}"' for imp in imports)
    out.append(")")
    out.append("")
    if "syscall" in imports:
        out.append("var _ syscall.Errno")
        out.append("")

    for plan in plans:
        out.append(render_function(plan, opts))
        out.append("")

    return "\n".join(out).rstrip("\n") + "\n"


def generate(functions: Sequence[Function], profile: TargetProfile, opts: EmitOptions) -> str:
    plans = [plan_call(fn, profile) for fn in functions]
    return render_file(plans, opts)


def format_source(text: str, command: str = "gofmt") -> str:
    try:
        proc = subprocess.run(
            [command],
            input=text,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            encoding="utf-8",
            check=False,
        )
    except OSError as e:
        raise FormatError(f"cannot run {command}: {e}") from e
    if proc.returncode != 0:
        raise FormatError(f"{command} rejected the generated source: {proc.stderr.strip()}")
    return proc.stdout
