# tests/test_service.py
from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from fakes import make_env, wait_until

from core.errors import InvalidInput
from core.models.geometry import DisplayInfo, OverlayMode, Point, Rect
from core.pick.coordinator import GENERIC_LOAD_MSG

OPERATIONS = {
    "open-overlay",
    "close-overlay",
    "get-last-rect",
    "set-last-rect",
    "capture-region",
    "finish-capture",
    "pick-point",
    "point-picked",
    "start-batch",
    "stop-batch",
    "get-primary-display-info",
    "dip-to-screen-rect",
    "emit-status",
    "emit-log",
}


def test_operation_names(tmp_path: Path) -> None:
    env = make_env(tmp_path)
    assert set(env.service.operations) == OPERATIONS


def test_unknown_operation_rejected(tmp_path: Path) -> None:
    env = make_env(tmp_path)
    with pytest.raises(InvalidInput):
        asyncio.run(env.service.invoke("no-such-op"))


def test_open_overlay_shows_then_hides_main(tmp_path: Path) -> None:
    env = make_env(tmp_path)
    asyncio.run(env.service.invoke("open-overlay"))

    ov = env.state.overlay
    assert ov is not None and ov.mode is OverlayMode.CROP
    assert ov.load_calls == 1 and ov.is_visible()
    assert not env.main.visible
    assert env.events.index(("overlay", "show")) < env.events.index(("main", "hide"))


def test_open_overlay_reuses_live_crop_overlay(tmp_path: Path) -> None:
    env = make_env(tmp_path)

    async def main():
        await env.service.invoke("open-overlay")
        await env.service.invoke("open-overlay")

    asyncio.run(main())
    assert len(env.factory.created) == 1
    assert env.factory.created[0].reset_count == 1


def test_open_overlay_load_failure(tmp_path: Path) -> None:
    env = make_env(tmp_path)
    env.factory.configure = lambda ov: ov.load_errors.extend([RuntimeError("x")] * 3)

    asyncio.run(env.service.invoke("open-overlay"))
    assert env.statuses == [f"overlay-failed:{GENERIC_LOAD_MSG}"]
    assert env.state.overlay is None
    assert env.main.visible


def test_close_overlay_cancels(tmp_path: Path) -> None:
    env = make_env(tmp_path)

    async def main():
        await env.service.invoke("open-overlay")
        await env.service.invoke("close-overlay")

    asyncio.run(main())
    assert env.statuses == ["cancelled"]
    assert env.state.overlay is None
    assert env.main.visible


def test_last_rect_roundtrip_and_malformed_ignored(tmp_path: Path) -> None:
    env = make_env(tmp_path)

    async def main():
        assert await env.service.invoke("get-last-rect") is None
        await env.service.invoke("set-last-rect", {"x": 1, "y": 2, "width": 30, "height": 40})
        await env.service.invoke("set-last-rect", {"x": "bad"})
        return await env.service.invoke("get-last-rect")

    assert asyncio.run(main()) == Rect(1, 2, 30, 40)


def test_capture_region_from_overlay_payload(tmp_path: Path) -> None:
    env = make_env(tmp_path)

    async def main():
        await env.service.invoke("open-overlay")
        await env.service.invoke("capture-region", {"x": 100, "y": 100, "width": 200, "height": 100})

    asyncio.run(main())
    assert env.statuses == ["capturing", "copied"]
    assert env.state.overlay is None
    assert env.main.visible


def test_capture_region_malformed_ignored(tmp_path: Path) -> None:
    env = make_env(tmp_path)
    asyncio.run(env.service.invoke("capture-region", {"x": 1}))
    assert env.statuses == []
    assert env.grabber.regions == []


def test_pick_roundtrip_through_requests(tmp_path: Path) -> None:
    env = make_env(tmp_path)

    async def main():
        task = asyncio.ensure_future(env.service.invoke("pick-point"))
        await wait_until(lambda: env.state.overlay is not None and env.state.overlay.is_visible())
        # 覆盖层内容通过同一个请求通道回报点击
        await env.state.overlay.request("point-picked", {"x": 640, "y": 360})
        return await task

    assert asyncio.run(main()) == Point(640, 360)
    assert env.state.overlay is None


def test_close_overlay_during_pick_resolves_none(tmp_path: Path) -> None:
    env = make_env(tmp_path)

    async def main():
        task = asyncio.ensure_future(env.service.invoke("pick-point"))
        await wait_until(lambda: env.state.overlay is not None and env.state.overlay.is_visible())
        await env.service.invoke("close-overlay")
        return await task

    assert asyncio.run(main()) is None
    assert env.statuses == ["cancelled"]


def test_open_overlay_cancels_pending_pick(tmp_path: Path) -> None:
    env = make_env(tmp_path)

    async def main():
        task = asyncio.ensure_future(env.service.invoke("pick-point"))
        await wait_until(lambda: env.state.overlay is not None and env.state.overlay.is_visible())
        await env.service.invoke("open-overlay")
        return await task

    assert asyncio.run(main()) is None
    assert env.state.overlay.mode is OverlayMode.CROP
    assert [o.mode for o in env.factory.created] == [OverlayMode.PICK, OverlayMode.CROP]


def test_display_operations(tmp_path: Path) -> None:
    env = make_env(tmp_path, scale=1.5)

    async def main():
        info = await env.service.invoke("get-primary-display-info")
        phys = await env.service.invoke("dip-to-screen-rect", {"x": 10, "y": 10, "width": 100, "height": 100})
        return info, phys

    info, phys = asyncio.run(main())
    assert isinstance(info, DisplayInfo) and info.scale_factor == 1.5
    assert phys == Rect(15, 15, 150, 150)

    with pytest.raises(InvalidInput):
        asyncio.run(env.service.invoke("dip-to-screen-rect", {"x": 1}))


def test_batch_requests(tmp_path: Path) -> None:
    env = make_env(tmp_path)

    async def main():
        await env.service.invoke("start-batch", {"loopCount": 0})
        await env.service.invoke("stop-batch")

    asyncio.run(main())
    assert env.statuses == ["batch-error:循环次数必须大于0", "batch-stopped"]


def test_overlay_forwarding(tmp_path: Path) -> None:
    env = make_env(tmp_path)

    async def main():
        await env.service.invoke("emit-status", "copied")
        await env.service.invoke("emit-status", "")
        await env.service.invoke("emit-log", "hello from overlay")

    asyncio.run(main())
    assert env.statuses == ["copied"]


def test_shutdown_cleans_up(tmp_path: Path) -> None:
    env = make_env(tmp_path)

    async def main():
        fut = env.service.picker.pick_point()
        await wait_until(lambda: env.state.overlay is not None and env.state.overlay.is_visible())
        env.service.shutdown()
        return await fut

    assert asyncio.run(main()) is None
    assert env.state.overlay is None
    assert env.state.active_pick is None


def test_rect_two_picks_then_batch_through_requests(tmp_path: Path) -> None:
    env = make_env(tmp_path)

    async def pick(x: int, y: int):
        task = asyncio.ensure_future(env.service.invoke("pick-point"))
        assert await wait_until(lambda: env.state.overlay is not None and env.state.overlay.is_visible())
        await env.state.overlay.request("point-picked", {"x": x, "y": y})
        return await task

    async def main():
        await env.service.invoke("set-last-rect", {"x": 10, "y": 10, "width": 100, "height": 80})
        left = await pick(100, 200)
        right = await pick(500, 200)
        await env.service.invoke(
            "start-batch",
            {
                "loopCount": 3,
                "leftSourcePos": left.to_dict(),
                "rightSourcePos": right.to_dict(),
                "leftOffsetDistance": 50,
                "rightOffsetDistance": 50,
            },
        )
        await env.service.batch.task
        return left, right

    left, right = asyncio.run(main())
    assert left == Point(100, 200) and right == Point(500, 200)
    assert [o.mode for o in env.factory.created] == [OverlayMode.PICK, OverlayMode.PICK]

    assert env.statuses == [
        "batch-progress:1:3",
        "batch-progress:2:3",
        "batch-progress:3:3",
        "batch-complete",
    ]
    moves = [(e[1], e[2]) for e in env.input.events if e[0] == "move"]
    assert moves == [
        (500, 200), (100, 200),
        (500, 250), (100, 250),
        (500, 300), (100, 300),
    ]
    assert env.grabber.regions == [Rect(12, 12, 96, 76)] * 3
    assert [img.size for img in env.clipboard.writes] == [(96, 76)] * 3
    assert env.input.events.count(("down", "ctrl")) == 3
    assert env.input.events.count(("up", "ctrl")) == 3

    assert env.state.overlay is None
    assert env.state.batch_running is False
    assert env.main.visible and not env.main.minimized
