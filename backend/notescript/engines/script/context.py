"""
ScriptContext: per-run module table, api handles and transaction control.

One context is built for every bundle run and discarded afterwards; nothing
is shared between runs.
"""

import importlib
import logging
import re
from collections.abc import Callable, Iterable
from typing import Any

from sqlmodel import Session

from notescript.core.config import settings
from notescript.core.redis_client import get_redis
from notescript.core.source_id import get_current_source_id
from notescript.models import Note

from .api import ScriptApi
from .bundle import sanitize_variable_name
from .modules import HostPolicy, ScriptEnv, ScriptHttp, make_cache_module

_log = logging.getLogger(__name__)

# Only allow top-level module names (e.g. math, statistics), no submodules
_SAFE_MODULE_NAME_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


class ScriptModuleError(RuntimeError):
    """A script note's module body raised; names the note it came from."""

    def __init__(self, note_id: str, title: str, cause: BaseException) -> None:
        self.note_id = note_id
        self.title = title
        super().__init__(
            f'Load of script note "{title}" ({note_id}) failed with: {cause}'
        )


class ScriptModuleNotFoundError(LookupError):
    """require() found neither a child module nor a whitelisted module."""


def extra_modules() -> dict[str, Any]:
    """Whitelisted modules from SCRIPT_EXTRA_MODULES, imported on demand."""
    found: dict[str, Any] = {}
    raw = (settings.SCRIPT_EXTRA_MODULES or "").strip()
    for name in (s.strip() for s in raw.split(",") if s.strip()):
        if not _SAFE_MODULE_NAME_RE.match(name):
            continue
        try:
            found[name] = importlib.import_module(name)
        except ImportError as e:
            _log.warning("SCRIPT_EXTRA_MODULES: cannot import %s: %s", name, e)
    return found


class ScriptModule:
    """Module table slot; scripts may replace ``module.exports`` wholesale."""

    # lets RestrictedPython's write guard accept `module.exports = ...`
    _guarded_writes = True

    def __init__(self) -> None:
        self.exports: Any = {}


class ScriptContext:
    """
    Binds start note, every bundled note and the origin entity for one run.

    Writes made through the api handles are stamped with ``source_id``. With
    ``autocommit`` (manual transaction handling) every write commits at once
    unless the script opened a transaction itself.
    """

    def __init__(
        self,
        start_note: Note,
        all_notes: Iterable[Note],
        origin_entity: Any = None,
        *,
        session: Session,
        source_id: str | None = None,
        autocommit: bool = False,
        cache_client: Any = None,
        http_policy: HostPolicy | None = None,
        logger: logging.Logger | None = None,
        log_sink: list[str] | None = None,
    ) -> None:

        self.start_note = start_note
        self.all_notes = list(all_notes)
        self.origin_entity = origin_entity
        self.session = session
        self.source_id = source_id or get_current_source_id()
        self.logger = logger or _log
        self.log_messages: list[str] = log_sink if log_sink is not None else []

        self._autocommit = autocommit
        self._in_tx = False

        self.http = ScriptHttp(
            http_policy or HostPolicy.from_setting(settings.SCRIPT_HTTP_ALLOWED_HOSTS)
        )
        self.env = ScriptEnv(settings)
        self._cache_client = cache_client if cache_client is not None else get_redis()

        self._notes = {n.note_id: n for n in self.all_notes}
        self.modules: dict[str, ScriptModule] = {}
        self.apis: dict[str, ScriptApi] = {
            n.note_id: ScriptApi(self, n) for n in self.all_notes
        }

    def make_cache(self, note_id: str) -> Any:
        return make_cache_module(note_id=note_id, cache_client=self._cache_client)

    # ------------------------------------------------------------------
    # Module system
    # ------------------------------------------------------------------

    def get_module(self, note_id: str) -> ScriptModule:
        """Slot for ``note_id``; created empty on first reference."""
        module = self.modules.get(note_id)
        if module is None:
            module = self.modules[note_id] = ScriptModule()
        return module

    def require(self, child_note_ids: list[str]) -> Callable[[str], Any]:
        """Resolver limited to the given child modules (then whitelisted modules)."""
        children = [self._notes[cid] for cid in child_note_ids if cid in self._notes]

        def require(name: str) -> Any:
            for match in (
                lambda n: n.title == name,
                lambda n: sanitize_variable_name(n.title) == name,
            ):
                for child in children:
                    if match(child):
                        return self.get_module(child.note_id).exports
            extra = extra_modules()
            if name in extra:
                return extra[name]
            raise ScriptModuleNotFoundError(f"Module '{name}' not found")

        return require

    def load_module(
        self, note_id: str, factory: Callable[..., Any], child_note_ids: list[str]
    ) -> Any:
        """
        Run one module factory and publish its exports.

        Returns whatever the module body returned (the bundle result for the
        root note).
        """
        module = self.get_module(note_id)
        exports: dict[str, Any] = {}
        child_exports = [self.get_module(cid).exports for cid in child_note_ids]
        try:
            result = factory(
                exports,
                module,
                self.require(child_note_ids),
                self.apis.get(note_id),
                *child_exports,
            )
        except ScriptModuleError:
            raise
        except Exception as e:
            note = self._notes.get(note_id)
            raise ScriptModuleError(note_id, note.title if note else "", e) from e

        if module.exports is None:
            module.exports = {}
        if isinstance(module.exports, dict):
            for key, value in exports.items():
                module.exports[key] = value
        elif exports:
            self.logger.warning(
                "Script note %s replaced module.exports; additive exports ignored",
                note_id,
            )
        return result

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def after_write(self) -> None:
        """Commit right away in autocommit mode outside explicit transactions."""
        if not self._autocommit or self._in_tx:
            return
        self.session.commit()

    def begin_tx(self) -> None:
        self._in_tx = True

    def commit_tx(self) -> None:
        try:
            self.session.commit()
        finally:
            self._in_tx = False

    def rollback_tx(self) -> None:
        try:
            self.session.rollback()
        finally:
            self._in_tx = False

    def transactional(self, func: Callable[[], Any]) -> Any:
        """Run ``func`` all-or-nothing. Inside an implicit run it just calls it."""
        if not self._autocommit or self._in_tx:
            return func()
        self.begin_tx()
        try:
            result = func()
        except Exception:
            self.rollback_tx()
            raise
        self.commit_tx()
        return result

    def release(self) -> None:
        """Call at run end: close the http client, drop an unfinished explicit tx."""
        try:
            if self._autocommit and self._in_tx:
                _log.warning("Script left a transaction open; rolling back")
                self.rollback_tx()
        finally:
            self.http.close()

    def to_dict(self) -> dict[str, Any]:
        """Namespace for exec(compiled, globals)."""
        return {"load_module": self.load_module}
