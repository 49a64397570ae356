"""
Engines: Script (Python notes in RestrictedPython).
"""

from notescript.engines.script import ScriptContext, ScriptExecutor

__all__ = [
    "ScriptExecutor",
    "ScriptContext",
]
