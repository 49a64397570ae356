"""
Helpers exposed on every script's ``api`` handle: log, http, cache, env.
"""

from notescript.engines.script.modules.cache import make_cache_module
from notescript.engines.script.modules.env import ScriptEnv
from notescript.engines.script.modules.http import HostPolicy, ScriptHttp
from notescript.engines.script.modules.log import make_log_module

__all__ = [
    "HostPolicy",
    "ScriptEnv",
    "ScriptHttp",
    "make_cache_module",
    "make_log_module",
]
