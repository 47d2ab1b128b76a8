# tests/test_pick_coordinator.py
from __future__ import annotations

import asyncio
from pathlib import Path

from fakes import make_env, wait_until

from core.errors import MacroError, PickTimeout
from core.models.geometry import OverlayMode, Point
from core.models.settings import Timings
from core.pick.coordinator import GENERIC_LOAD_MSG, TIMEOUT_MSG, UNREACHABLE_MSG


def _overlay_shown(env) -> bool:
    ov = env.state.overlay
    return ov is not None and ov.is_visible()


def test_concurrent_requests_share_one_future(tmp_path: Path) -> None:
    env = make_env(tmp_path)
    picker = env.service.picker

    async def main():
        f1 = picker.pick_point()
        f2 = picker.pick_point()
        assert f1 is f2
        assert await wait_until(lambda: _overlay_shown(env))
        picker.point_picked(Point(11, 22))
        return await f1, await f2

    r1, r2 = asyncio.run(main())
    assert r1 == Point(11, 22) and r2 == Point(11, 22)
    assert len(env.factory.created) == 1
    assert env.factory.created[0].mode is OverlayMode.PICK


def test_click_resolves_and_restores(tmp_path: Path) -> None:
    env = make_env(tmp_path)
    picker = env.service.picker

    async def main():
        fut = picker.pick_point()
        assert picker.phase == "requesting"
        assert await wait_until(lambda: _overlay_shown(env))
        assert picker.point_picked(Point(5, 6)) is True
        return await fut

    assert asyncio.run(main()) == Point(5, 6)
    assert picker.phase == "idle"
    assert env.state.active_pick is None
    assert env.state.overlay is None
    assert env.main.visible
    assert env.statuses == []


def test_main_hidden_only_after_overlay_visible(tmp_path: Path) -> None:
    env = make_env(tmp_path)
    picker = env.service.picker

    async def main():
        fut = picker.pick_point()
        assert await wait_until(lambda: not env.main.visible)
        picker.point_picked(Point(1, 1))
        await fut

    asyncio.run(main())
    ev = env.events
    assert ev.index(("overlay", "show")) < ev.index(("main", "hide"))


def test_main_kept_visible_when_overlay_never_shows(tmp_path: Path) -> None:
    env = make_env(tmp_path)
    env.factory.configure = lambda ov: setattr(ov, "fail_show_times", 10)
    picker = env.service.picker

    async def main():
        fut = picker.pick_point()
        ov_ready = await wait_until(lambda: env.state.overlay is not None and env.state.overlay.load_calls > 0)
        assert ov_ready
        for _ in range(50):
            await asyncio.sleep(0)
        assert env.main.visible
        assert ("main", "hide") not in env.events
        picker.cancel()
        return await fut

    assert asyncio.run(main()) is None


def test_timeout_resolves_once_and_ignores_late_click(tmp_path: Path) -> None:
    env = make_env(tmp_path, timings=Timings(pick_timeout_ms=30))
    picker = env.service.picker

    async def main():
        fut = picker.pick_point()
        result = await fut
        late = picker.point_picked(Point(9, 9))
        await asyncio.sleep(0.05)
        return result, late

    result, late = asyncio.run(main())
    assert result is None
    assert late is False
    assert env.statuses == [f"pick-point-failed:{TIMEOUT_MSG}"]
    assert env.state.overlay is None
    assert env.main.visible


def test_cancel_resolves_none(tmp_path: Path) -> None:
    env = make_env(tmp_path)
    picker = env.service.picker

    async def main():
        fut = picker.pick_point()
        await wait_until(lambda: _overlay_shown(env))
        assert picker.cancel() is True
        assert picker.cancel() is False
        return await fut

    assert asyncio.run(main()) is None
    assert env.statuses == ["cancelled"]
    assert env.state.overlay is None


def test_unreachable_load_failure(tmp_path: Path) -> None:
    env = make_env(tmp_path)
    env.factory.configure = lambda ov: ov.load_errors.extend(
        [ConnectionRefusedError("ERR_CONNECTION_REFUSED")] * 3
    )

    async def main():
        return await env.service.picker.pick_point()

    assert asyncio.run(main()) is None
    assert env.factory.created[0].load_calls == 3
    assert env.sleep.delays[:2] == [0.5, 0.5]
    assert env.statuses == [f"pick-point-failed:{UNREACHABLE_MSG}"]
    assert env.state.overlay is None
    assert env.main.visible


def test_generic_load_failure(tmp_path: Path) -> None:
    env = make_env(tmp_path)
    env.factory.configure = lambda ov: ov.load_errors.extend([RuntimeError("bad page")] * 3)

    async def main():
        return await env.service.picker.pick_point()

    assert asyncio.run(main()) is None
    assert env.statuses == [f"pick-point-failed:{GENERIC_LOAD_MSG}"]


def test_load_recovers_on_retry(tmp_path: Path) -> None:
    env = make_env(tmp_path)
    env.factory.configure = lambda ov: ov.load_errors.append(RuntimeError("first load flaky"))
    picker = env.service.picker

    async def main():
        fut = picker.pick_point()
        assert await wait_until(lambda: _overlay_shown(env))
        picker.point_picked(Point(3, 4))
        return await fut

    assert asyncio.run(main()) == Point(3, 4)
    assert env.factory.created[0].load_calls == 2


def test_caller_cancelling_future_cleans_up(tmp_path: Path) -> None:
    env = make_env(tmp_path)
    picker = env.service.picker

    async def main():
        fut = picker.pick_point()
        await wait_until(lambda: _overlay_shown(env))
        fut.cancel()
        await wait_until(lambda: env.state.active_pick is None)

    asyncio.run(main())
    assert env.state.active_pick is None
    assert env.state.overlay is None
    assert env.statuses == ["cancelled"]


def test_slow_load_shows_overlay_after_page_ready_timeout(tmp_path: Path) -> None:
    env = make_env(tmp_path, timings=Timings(page_ready_timeout_ms=50, pick_timeout_ms=5000))

    async def never_loads() -> None:
        await asyncio.Event().wait()

    env.factory.configure = lambda ov: setattr(ov, "load", never_loads)
    picker = env.service.picker

    async def main():
        fut = picker.pick_point()
        for _ in range(200):
            if _overlay_shown(env):
                break
            await asyncio.sleep(0.01)
        shown = _overlay_shown(env)
        main_hidden = not env.main.visible
        picker.point_picked(Point(7, 8))
        return shown, main_hidden, await fut

    shown, main_hidden, result = asyncio.run(main())
    assert shown is True
    assert main_hidden is True
    assert result == Point(7, 8)
    assert env.statuses == []
    assert env.state.overlay is None


def test_pick_timeout_error_carries_message() -> None:
    err = PickTimeout(TIMEOUT_MSG, timeout_ms=30000)
    assert isinstance(err, MacroError)
    assert str(err) == TIMEOUT_MSG
    assert err.timeout_ms == 30000
