"""
RestrictedPython sandbox for script notes.

Allowed: dict, list, str, int, float, bool, range, enumerate, zip, sorted,
len, round, min, max, sum, abs, json.loads/dumps, datetime/date/time/timedelta,
and the context bindings (load_module plus whatever the caller injects).

Blocked: open, exec, eval, __import__, compile, os, subprocess, names that
start with an underscore, etc.
"""

import ast
import json
import operator
from collections.abc import Sequence
from datetime import date, datetime, time, timedelta
from typing import Any

from RestrictedPython import compile_restricted
from RestrictedPython.Eval import default_guarded_getitem, default_guarded_getiter
from RestrictedPython.Guards import (
    full_write_guard,
    guarded_iter_unpack_sequence,
    guarded_unpack_sequence,
    safe_builtins,
    safer_getattr,
)
from RestrictedPython.PrintCollector import PrintCollector

_INPLACE_OPS = {
    "+=": operator.iadd,
    "-=": operator.isub,
    "*=": operator.imul,
    "/=": operator.itruediv,
    "//=": operator.ifloordiv,
    "%=": operator.imod,
    "**=": operator.ipow,
    "<<=": operator.ilshift,
    ">>=": operator.irshift,
    "&=": operator.iand,
    "|=": operator.ior,
    "^=": operator.ixor,
}


def _inplacevar(op: str, target: Any, value: Any) -> Any:
    """`x += y` on plain names is rewritten by RestrictedPython into this call."""
    fn = _INPLACE_OPS.get(op)
    if fn is None:
        raise SyntaxError(f"Unsupported in-place operator: {op}")
    return fn(target, value)


def _apply(func: Any, *args: Any, **kwargs: Any) -> Any:
    return func(*args, **kwargs)


def _make_safe_builtins() -> dict[str, Any]:
    """Copy of RestrictedPython's safe_builtins."""
    return dict(safe_builtins)


def _make_guard_globals() -> dict[str, Any]:
    """Guards required by RestrictedPython's rewritten bytecode."""
    return {
        "_getattr_": safer_getattr,
        "_getiter_": default_guarded_getiter,
        "_getitem_": default_guarded_getitem,
        "_iter_unpack_sequence_": guarded_iter_unpack_sequence,
        "_unpack_sequence_": guarded_unpack_sequence,
        "_write_": full_write_guard,
        "_inplacevar_": _inplacevar,
        "_apply_": _apply,
        "_print_": PrintCollector,
        "__metaclass__": type,
    }


def _make_extra_globals() -> dict[str, Any]:
    """Extra safe symbols: json, datetime, date, time, timedelta."""
    return {
        "json": json,
        "datetime": datetime,
        "date": date,
        "time": time,
        "timedelta": timedelta,
    }


_SCOPE_NODES = (ast.FunctionDef, ast.AsyncFunctionDef, ast.Lambda, ast.ClassDef)


def _yields(stmts: Sequence[ast.stmt]) -> bool:
    """True when the statements yield in their own scope, which would turn the
    wrapping function into a generator."""
    todo: list[ast.AST] = list(stmts)
    while todo:
        node = todo.pop()
        if isinstance(node, (ast.Yield, ast.YieldFrom)):
            return True
        if isinstance(node, _SCOPE_NODES):
            continue
        todo.extend(ast.iter_child_nodes(node))
    return False


def wrap_function_body(body: str, name: str, params: Sequence[str] = ()) -> str:
    """
    Return source for ``def name(*params):`` whose body is ``body``.

    The body is parsed rather than re-indented, so multi-line strings keep
    their exact value and a top-level ``return`` becomes the function's return.
    Raises SyntaxError when ``body`` does not parse or yields.
    """
    stmts = ast.parse(body).body
    if _yields(stmts):
        raise SyntaxError("'yield' is not allowed at module level")
    func_tree = ast.parse(f"def {name}({', '.join(params)}):\n    pass\n")
    func = func_tree.body[0]
    assert isinstance(func, ast.FunctionDef)
    if stmts:
        func.body = stmts
    return ast.unparse(ast.fix_missing_locations(func_tree))


def compile_script(script: str, filename: str = "<script>") -> Any:
    """
    Compile script with RestrictedPython. Raises SyntaxError or other on failure.

    Returns a code object suitable for exec(bytecode, globals, locals).
    """
    code = compile_restricted(script, filename, "exec")
    if code is None:
        raise SyntaxError("RestrictedPython: compile failed")
    return code


def build_restricted_globals(context_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Build the globals dict for exec(compiled, globals): safe builtins, guards,
    extra (json, datetime), and the context bindings.
    """
    safe = _make_safe_builtins()
    g: dict[str, Any] = {
        "__builtins__": safe,
        "__name__": "script",
    }
    g.update(_make_guard_globals())
    g.update(_make_extra_globals())
    # Container and utility types are missing from safe_builtins; writes and
    # attribute access on them stay guarded.
    import builtins  # local import to avoid polluting globals

    for name in (
        "list", "dict", "set", "tuple", "len", "range", "min", "max", "sum",
        "abs", "sorted", "enumerate", "any", "all", "reversed", "map", "filter",
    ):
        obj = safe.get(name, getattr(builtins, name, None))
        if obj is not None:
            g[name] = obj
    g.update(context_dict)
    return g
