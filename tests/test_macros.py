from __future__ import annotations

import asyncio

import pytest

from rokucontrol.concurrency import ExecutionFlags
from rokucontrol.errors import ConflictError, InputError, NetworkError, NotFoundError
from rokucontrol.macros import (
    MacroLibrary,
    MacroSequencer,
    describe_step,
    parse_launch_value,
)
from rokucontrol.models import DelayStep, KeyStep, LaunchStep
from rokucontrol.storage import MACROS_KEY


class FakeRoku:
    def __init__(self, log, ip="192.168.1.70", fail_on=None):
        self.log = log
        self.saved_ip = ip
        self.fail_on = fail_on

    async def send_key(self, key):
        self.log.append(("key", key))
        if key == self.fail_on:
            raise NetworkError("HTTP 503", status=503)

    async def launch_app(self, app_id, content_id=None):
        self.log.append(("launch", app_id, content_id))


def make_sequencer(store, log, flags=None, roku=None, **kwargs):
    async def fake_sleep(seconds):
        log.append(("sleep", seconds))

    library = MacroLibrary(store)
    sequencer = MacroSequencer(
        library,
        roku or FakeRoku(log),
        flags or ExecutionFlags(),
        sleep=fake_sleep,
        **kwargs,
    )
    return library, sequencer


def test_parse_launch_value():
    launch = parse_launch_value(" 12?contentId=abc | Netflix ")
    assert (launch.app_id, launch.params, launch.label) == ("12", "contentId=abc", "Netflix")
    assert parse_launch_value("837").params == ""


def test_describe_step():
    assert describe_step(KeyStep(key="Home")) == "Press Home"
    assert describe_step(LaunchStep(app_id="12")) == "Launch Netflix"
    assert describe_step(LaunchStep(app_id="4242", params="x=1")) == "Launch App 4242 (x=1)"
    assert describe_step(DelayStep(duration_ms=2000)) == "Wait 2s"
    assert describe_step(DelayStep(duration_ms=1500)) == "Wait 1.5s"


def test_save_validates_name_and_steps(store):
    library = MacroLibrary(store)
    with pytest.raises(InputError):
        library.save("  ", [{"type": "key", "key": "Home"}])
    with pytest.raises(InputError):
        library.save("Empty", [])
    with pytest.raises(InputError):
        library.save("Bad", [{"type": "key"}])


def test_save_uses_draft_and_persists(store):
    library = MacroLibrary(store)
    library.add_draft_step({"type": "key", "key": "Home"})
    library.add_draft_step({"type": "delay", "durationMs": 500})
    library.remove_draft_step(5)

    macro = library.save(" Movie night ")

    assert macro.name == "Movie night"
    assert macro.id.startswith("macro-")
    assert library.draft_steps() == []
    stored = store.get(MACROS_KEY)
    assert stored[0]["steps"][1] == {"type": "delay", "durationMs": 500}

    reloaded = MacroLibrary(store)
    assert reloaded.get(macro.id).steps == macro.steps


def test_ids_are_unique(store):
    library = MacroLibrary(store)
    first = library.save("One", [{"type": "key", "key": "Home"}])
    second = library.save("Two", [{"type": "key", "key": "Back"}])
    assert first.id != second.id


def test_only_one_favorite(store):
    library = MacroLibrary(store)
    first = library.save("One", [{"type": "key", "key": "Home"}], favorite=True)
    second = library.save("Two", [{"type": "key", "key": "Back"}], favorite=True)

    assert [m.id for m in library.macros() if m.favorite] == [second.id]

    library.set_favorite(first.id)
    assert library.favorite().id == first.id
    assert sum(m.favorite for m in library.macros()) == 1

    assert library.toggle_favorite(first.id) is True
    assert library.favorite() is None
    assert library.toggle_favorite("missing") is False
    with pytest.raises(NotFoundError):
        library.set_favorite("missing")


def test_stored_duplicate_favorites_keep_the_first(store):
    steps = [{"type": "key", "key": "Home"}]
    store.set(
        MACROS_KEY,
        [
            {"id": "macro-1", "name": "One", "steps": steps, "favorite": True},
            {"id": "macro-2", "name": "Two", "steps": steps, "favorite": True},
            {"id": "macro-3", "name": "Three", "steps": steps},
        ],
    )

    library = MacroLibrary(store)

    assert [m.id for m in library.macros() if m.favorite] == ["macro-1"]
    assert library.favorite().id == "macro-1"


def test_listeners_fire_on_change(store):
    library = MacroLibrary(store)
    seen = []
    library.add_listener(lambda: seen.append(len(library.macros())))

    macro = library.save("One", [{"type": "key", "key": "Home"}])
    library.delete(macro.id)

    assert seen == [1, 0]
    assert library.delete(macro.id) is False


def test_run_executes_steps_in_order(store):
    log = []
    flags = ExecutionFlags()
    library, sequencer = make_sequencer(store, log, flags)
    macro = library.save(
        "Netflix",
        [
            {"type": "key", "key": "Home"},
            {"type": "delay", "durationMs": 500},
            {"type": "launch", "appId": "12", "params": "contentID=abc"},
        ],
    )

    assert not flags.macro.is_held
    asyncio.run(sequencer.run(macro.id))
    assert not flags.macro.is_held

    assert log == [
        ("key", "Home"),
        ("sleep", 0.3),
        ("sleep", 0.5),
        ("launch", "12", "contentID=abc"),
        ("sleep", 1.5),
    ]


def test_end_to_end_waits_at_least_the_delay(store):
    async def scenario():
        library = MacroLibrary(store)
        log = []
        sequencer = MacroSequencer(
            library, FakeRoku(log), ExecutionFlags(), key_settle_ms=0, launch_settle_ms=0
        )
        macro = library.save(
            "Quick",
            [
                {"type": "key", "key": "Home"},
                {"type": "delay", "durationMs": 500},
                {"type": "launch", "appId": "12"},
            ],
        )
        loop = asyncio.get_running_loop()
        started = loop.time()
        await sequencer.run(macro.id)
        return log, loop.time() - started

    log, elapsed = asyncio.run(scenario())
    assert log == [("key", "Home"), ("launch", "12", None)]
    # allow for event loop clock resolution
    assert elapsed >= 0.49


def test_second_run_is_rejected_while_running(store):
    async def scenario():
        gate = asyncio.Event()
        flags = ExecutionFlags()

        async def blocking_sleep(seconds):
            await gate.wait()

        library = MacroLibrary(store)
        sequencer = MacroSequencer(library, FakeRoku([]), flags, sleep=blocking_sleep)
        macro = library.save("Slow", [{"type": "key", "key": "Home"}])

        first = asyncio.create_task(sequencer.run(macro.id))
        await asyncio.sleep(0)
        assert sequencer.is_running
        with pytest.raises(ConflictError):
            await sequencer.run(macro.id)
        gate.set()
        await first
        return sequencer.is_running

    assert asyncio.run(scenario()) is False


def test_failed_step_stops_macro_and_clears_flag(store):
    log = []
    flags = ExecutionFlags()
    statuses = []
    library, sequencer = make_sequencer(
        store,
        log,
        flags,
        roku=FakeRoku(log, fail_on="Back"),
        on_status=lambda message, level: statuses.append(level),
    )
    macro = library.save(
        "Broken",
        [{"type": "key", "key": "Back"}, {"type": "key", "key": "Home"}],
    )

    with pytest.raises(NetworkError):
        asyncio.run(sequencer.run(macro.id))

    assert log == [("key", "Back")]
    assert not flags.macro.is_held
    assert statuses[-1] == "error"


def test_run_requires_roku_ip_and_known_macro(store):
    log = []
    library, sequencer = make_sequencer(store, log, roku=FakeRoku(log, ip=None))
    with pytest.raises(NotFoundError):
        asyncio.run(sequencer.run("macro-missing"))

    macro = library.save("One", [{"type": "key", "key": "Home"}])
    with pytest.raises(InputError):
        asyncio.run(sequencer.run(macro.id))
    assert log == []


def test_run_favorite(store):
    log = []
    library, sequencer = make_sequencer(store, log)
    with pytest.raises(NotFoundError):
        asyncio.run(sequencer.run_favorite())

    library.save("Fav", [{"type": "key", "key": "Play"}], favorite=True)
    asyncio.run(sequencer.run_favorite())
    assert log[0] == ("key", "Play")
