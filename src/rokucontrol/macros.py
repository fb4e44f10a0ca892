"""Stored Roku macros and the single-flight sequencer that plays them."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Iterable, Mapping
from typing import Any, NamedTuple, Protocol

from pydantic import ValidationError

from rokucontrol.concurrency import ExecutionFlags
from rokucontrol.errors import ConflictError, InputError, NotFoundError, to_control_error
from rokucontrol.models import STEP_ADAPTER, DelayStep, KeyStep, LaunchStep, Macro, MacroStep
from rokucontrol.roku import app_name_for
from rokucontrol.status import StatusCallback, notify
from rokucontrol.storage import MACROS_KEY, StateStore

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


class RokuCommands(Protocol):
    @property
    def saved_ip(self) -> str | None: ...

    async def send_key(self, key: str) -> None: ...

    async def launch_app(self, app_id: str, content_id: str | None = None) -> None: ...


class LaunchValue(NamedTuple):
    app_id: str
    params: str
    label: str


def resolve_app_name(app_id: str) -> str:
    return app_name_for(app_id) or f"App {app_id}"


def parse_launch_value(raw: str) -> LaunchValue:
    """Parse ``"appId?params|label"`` as typed into the macro editor."""
    endpoint, _, label = raw.partition("|")
    endpoint = endpoint.strip()
    label = label.strip()
    if not endpoint:
        return LaunchValue("", "", label)
    app_id, _, params = endpoint.partition("?")
    return LaunchValue(app_id.strip(), params.strip(), label)


def describe_step(step: MacroStep) -> str:
    if isinstance(step, KeyStep):
        return f"Press {step.key}"
    if isinstance(step, LaunchStep):
        label = step.label or resolve_app_name(step.app_id)
        return f"Launch {label}" + (f" ({step.params})" if step.params else "")
    if isinstance(step, DelayStep):
        seconds = step.duration_ms / 1000
        return f"Wait {seconds:.0f}s" if seconds.is_integer() else f"Wait {seconds:.1f}s"
    return "Unknown step"


def _to_step(step: MacroStep | Mapping[str, Any]) -> MacroStep:
    if isinstance(step, (KeyStep, LaunchStep, DelayStep)):
        return step
    try:
        return STEP_ADAPTER.validate_python(step)
    except ValidationError as exc:
        raise InputError(f"Invalid step: {exc}") from exc


class MacroLibrary:
    """CRUD over the persisted macro list plus the editor's draft steps."""

    def __init__(self, store: StateStore) -> None:
        self._store = store
        self._macros: list[Macro] = self._load()
        self._draft: list[MacroStep] = []
        self._listeners: list[Callable[[], None]] = []

    def _load(self) -> list[Macro]:
        raw = self._store.get(MACROS_KEY, [])
        if not isinstance(raw, list):
            logger.warning("Ignoring malformed macro list in storage")
            return []
        macros = []
        has_favorite = False
        for item in raw:
            try:
                macro = Macro.model_validate(item)
            except ValidationError as exc:
                logger.warning("Skipping invalid stored macro: %s", exc)
                continue
            if macro.favorite:
                if has_favorite:
                    logger.warning("Clearing extra favorite on macro %s", macro.id)
                    macro = macro.model_copy(update={"favorite": False})
                has_favorite = True
            macros.append(macro)
        return macros

    def _persist(self) -> None:
        self._store.set(
            MACROS_KEY, [macro.model_dump(mode="json", by_alias=True) for macro in self._macros]
        )
        for listener in list(self._listeners):
            listener()

    def add_listener(self, listener: Callable[[], None]) -> None:
        self._listeners.append(listener)

    def macros(self) -> list[Macro]:
        return list(self._macros)

    def get(self, macro_id: str) -> Macro | None:
        return next((macro for macro in self._macros if macro.id == macro_id), None)

    def favorite(self) -> Macro | None:
        return next((macro for macro in self._macros if macro.favorite), None)

    # draft

    def draft_steps(self) -> list[MacroStep]:
        return list(self._draft)

    def add_draft_step(self, step: MacroStep | Mapping[str, Any]) -> None:
        self._draft.append(_to_step(step))

    def remove_draft_step(self, index: int) -> None:
        if 0 <= index < len(self._draft):
            del self._draft[index]

    def clear_draft(self) -> None:
        self._draft.clear()

    # mutation

    def _new_id(self) -> str:
        stamp = int(time.time() * 1000)
        existing = {macro.id for macro in self._macros}
        while f"macro-{stamp}" in existing:
            stamp += 1
        return f"macro-{stamp}"

    def save(
        self,
        name: str,
        steps: Iterable[MacroStep | Mapping[str, Any]] | None = None,
        favorite: bool = False,
    ) -> Macro:
        name = (name or "").strip()
        if not name:
            raise InputError("Macro name is required")
        parsed = [_to_step(step) for step in steps] if steps is not None else list(self._draft)
        if not parsed:
            raise InputError("Add at least one step to the macro")

        macro = Macro(id=self._new_id(), name=name, steps=tuple(parsed), favorite=bool(favorite))
        if macro.favorite:
            self._macros = [m.model_copy(update={"favorite": False}) for m in self._macros]
        self._macros.append(macro)
        self._draft.clear()
        self._persist()
        logger.info("Saved macro %s (%d steps)", macro.id, len(macro.steps))
        return macro

    def delete(self, macro_id: str) -> bool:
        remaining = [macro for macro in self._macros if macro.id != macro_id]
        if len(remaining) == len(self._macros):
            return False
        self._macros = remaining
        self._persist()
        return True

    def toggle_favorite(self, macro_id: str) -> bool:
        """Flip ``favorite`` on one macro and clear it on every other one."""
        if self.get(macro_id) is None:
            return False
        self._macros = [
            m.model_copy(update={"favorite": (not m.favorite) if m.id == macro_id else False})
            for m in self._macros
        ]
        self._persist()
        return True

    def set_favorite(self, macro_id: str) -> Macro:
        if self.get(macro_id) is None:
            raise NotFoundError(f"Macro not found: {macro_id}")
        self._macros = [
            m.model_copy(update={"favorite": m.id == macro_id}) for m in self._macros
        ]
        self._persist()
        return self.get(macro_id)  # type: ignore[return-value]


class MacroSequencer:
    """Plays one macro at a time against the Roku client.

    Key presses settle for ``key_settle_ms`` and app launches for
    ``launch_settle_ms`` before the next step starts.
    """

    def __init__(
        self,
        library: MacroLibrary,
        roku: RokuCommands,
        flags: ExecutionFlags,
        *,
        key_settle_ms: int = 300,
        launch_settle_ms: int = 1500,
        sleep: Sleep = asyncio.sleep,
        on_status: StatusCallback | None = None,
    ) -> None:
        self._library = library
        self._roku = roku
        self._flags = flags
        self._key_settle_ms = key_settle_ms
        self._launch_settle_ms = launch_settle_ms
        self._sleep = sleep
        self._on_status = on_status

    @property
    def is_running(self) -> bool:
        return self._flags.macro.is_held

    async def _wait_ms(self, ms: int) -> None:
        await self._sleep(ms / 1000)

    async def _execute(self, step: MacroStep) -> None:
        if isinstance(step, KeyStep):
            await self._roku.send_key(step.key)
            await self._wait_ms(self._key_settle_ms)
        elif isinstance(step, LaunchStep):
            label = step.label or resolve_app_name(step.app_id)
            notify(self._on_status, f"Macro launching {label}...")
            await self._roku.launch_app(step.app_id, step.params or None)
            await self._wait_ms(self._launch_settle_ms)
        elif isinstance(step, DelayStep):
            await self._wait_ms(step.duration_ms)

    async def run(self, macro_id: str) -> Macro:
        message = "A macro is already running"
        if self._flags.macro.is_held:
            raise ConflictError(message)

        macro = self._library.get(macro_id)
        if macro is None:
            raise NotFoundError(f"Macro not found: {macro_id}")
        if not self._roku.saved_ip:
            raise InputError("Roku IP not configured")

        with self._flags.macro.hold(message):
            notify(self._on_status, f'Running macro "{macro.name}"...')
            try:
                for step in macro.steps:
                    await self._execute(step)
            except Exception as exc:
                error = to_control_error(exc)
                notify(self._on_status, f"Macro stopped: {error.message}", "error")
                if error is exc:
                    raise
                raise error from exc
            notify(self._on_status, f'Macro "{macro.name}" finished!', "success")
        return macro

    async def run_favorite(self) -> Macro:
        favorite = self._library.favorite()
        if favorite is None:
            raise NotFoundError("No favorite macro set")
        return await self.run(favorite.id)
