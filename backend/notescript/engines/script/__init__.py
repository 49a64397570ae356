"""
Script engine for script notes (Python, RestrictedPython).

Exports: ScriptExecutor, ScriptContext, get_script_bundle,
get_script_bundle_for_frontend, compile_script, build_restricted_globals.
"""

from .bundle import (
    ScriptBundle,
    ScriptBundleError,
    get_script_bundle,
    get_script_bundle_for_frontend,
    sanitize_variable_name,
)
from .context import ScriptContext, ScriptModuleError, ScriptModuleNotFoundError
from .executor import ScriptExecutor, ScriptTimeoutError
from .sandbox import build_restricted_globals, compile_script

__all__ = [
    "ScriptBundle",
    "ScriptBundleError",
    "ScriptContext",
    "ScriptExecutor",
    "ScriptModuleError",
    "ScriptModuleNotFoundError",
    "ScriptTimeoutError",
    "build_restricted_globals",
    "compile_script",
    "get_script_bundle",
    "get_script_bundle_for_frontend",
    "sanitize_variable_name",
]
