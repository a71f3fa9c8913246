import asyncio
import random
import signal
from unittest.mock import AsyncMock, MagicMock

import pytest

from url_render_service.components.renderer.playwright_manager import BrowserLifecycleManager
from url_render_service.core.exceptions import BrowserLaunchError, RendererError


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def test_init_defaults():
    manager = BrowserLifecycleManager(config=None)
    assert manager.browser_type == "chromium"
    assert manager.headless is True
    assert "--no-sandbox" in manager.launch_args
    assert manager.launch_timeout == 30000
    assert manager.browser is None
    assert manager.is_running is False


def test_init_with_config(mock_config):
    config = mock_config(settings={"renderer": {
        "browser_type": "firefox",
        "headless": False,
        "launch_args": ["--foo"],
        "rotation": {"interval_seconds": 60, "after_renders": 5, "probability": 0.1},
    }})
    manager = BrowserLifecycleManager(config=config)
    assert manager.browser_type == "firefox"
    assert manager.headless is False
    assert manager.launch_args == ["--foo"]
    assert manager.rotation_interval == 60
    assert manager.rotate_after_renders == 5
    assert manager.rotation_probability == 0.1


def test_init_invalid_browser_type(mock_config):
    with pytest.raises(RendererError) as excinfo:
        BrowserLifecycleManager(config=mock_config(settings={"renderer": {"browser_type": "explorer"}}))
    assert "Unsupported browser type: explorer" in str(excinfo.value)


@pytest.mark.asyncio
async def test_acquire_launches_once_and_reuses(fakes):
    factory, engine = fakes.playwright()
    manager = BrowserLifecycleManager(config=None, playwright_factory=factory)

    first = await manager.acquire()
    second = await manager.acquire()

    assert first is second
    assert manager.launch_count == 1
    engine.chromium.launch.assert_awaited_once()
    kwargs = engine.chromium.launch.await_args.kwargs
    assert kwargs["headless"] is True
    assert kwargs["timeout"] == 30000


@pytest.mark.asyncio
async def test_concurrent_acquire_shares_one_launch(fakes):
    factory, engine = fakes.playwright()
    manager = BrowserLifecycleManager(config=None, playwright_factory=factory)

    browsers = await asyncio.gather(*(manager.acquire() for _ in range(5)))

    assert len({id(b) for b in browsers}) == 1
    engine.chromium.launch.assert_awaited_once()


@pytest.mark.asyncio
async def test_release_is_idempotent(fakes):
    browser = fakes.browser()
    factory, _ = fakes.playwright([browser])
    manager = BrowserLifecycleManager(config=None, playwright_factory=factory)
    await manager.acquire()

    assert await manager.release("test") is True
    assert await manager.release("test again") is False
    browser.close.assert_awaited_once()
    assert manager.browser is None


@pytest.mark.asyncio
async def test_release_swallows_close_errors(fakes):
    browser = fakes.browser()
    browser.close = AsyncMock(side_effect=RuntimeError("Browser has been closed"))
    factory, _ = fakes.playwright([browser])
    manager = BrowserLifecycleManager(config=None, playwright_factory=factory)
    await manager.acquire()

    assert await manager.release("crash") is True
    assert manager.browser is None


@pytest.mark.asyncio
async def test_release_then_acquire_relaunches(fakes):
    first, second = fakes.browser(), fakes.browser()
    factory, engine = fakes.playwright([first, second])
    manager = BrowserLifecycleManager(config=None, playwright_factory=factory)

    assert await manager.acquire() is first
    await manager.release("manual restart")
    assert await manager.acquire() is second
    assert manager.launch_count == 2


@pytest.mark.asyncio
async def test_disconnected_browser_is_replaced(fakes):
    first, second = fakes.browser(), fakes.browser()
    factory, _ = fakes.playwright([first, second])
    manager = BrowserLifecycleManager(config=None, playwright_factory=factory)
    await manager.acquire()

    first.is_connected.return_value = False
    assert await manager.acquire() is second


@pytest.mark.asyncio
async def test_launch_failure_raises_and_leaves_no_handle(fakes):
    factory, engine = fakes.playwright()
    engine.chromium.launch = AsyncMock(side_effect=RuntimeError("Executable doesn't exist"))
    manager = BrowserLifecycleManager(config=None, playwright_factory=factory)

    with pytest.raises(BrowserLaunchError) as excinfo:
        await manager.acquire()
    assert "Executable doesn't exist" in excinfo.value.detail
    assert manager.browser is None
    engine.stop.assert_awaited_once()


@pytest.mark.asyncio
async def test_launch_timeout(fakes, mock_config):
    factory, engine = fakes.playwright()

    async def hang(**kwargs):
        await asyncio.sleep(10)

    engine.chromium.launch = AsyncMock(side_effect=hang)
    manager = BrowserLifecycleManager(
        config=mock_config(settings={"renderer": {"launch_timeout": 50}}),
        playwright_factory=factory,
    )
    with pytest.raises(BrowserLaunchError) as excinfo:
        await manager.acquire()
    assert "timed out" in excinfo.value.detail
    assert manager.browser is None


@pytest.mark.asyncio
async def test_rotation_by_age_is_deferred_to_acquire(fakes):
    first, second = fakes.browser(), fakes.browser()
    factory, _ = fakes.playwright([first, second])
    clock = FakeClock()
    manager = BrowserLifecycleManager(config=None, playwright_factory=factory, clock=clock)
    manager.rotation_interval = 60

    await manager.acquire()
    clock.now += 61
    # Nothing happens until the next acquire.
    first.close.assert_not_awaited()
    assert manager.describe()["rotationPending"] is True

    assert await manager.acquire() is second
    first.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_rotation_by_render_count(fakes):
    factory, engine = fakes.playwright()
    manager = BrowserLifecycleManager(config=None, playwright_factory=factory)
    manager.rotation_interval = 0
    manager.rotate_after_renders = 2

    await manager.acquire()
    manager.note_render_completed()
    await manager.acquire()
    manager.note_render_completed()
    await manager.acquire()

    assert engine.chromium.launch.await_count == 2


@pytest.mark.asyncio
async def test_probabilistic_rotation(fakes):
    factory, engine = fakes.playwright()
    rng = MagicMock(spec=random.Random)
    rng.random.return_value = 0.01
    manager = BrowserLifecycleManager(config=None, playwright_factory=factory, rng=rng)
    manager.rotation_interval = 0
    manager.rotation_probability = 0.05

    await manager.acquire()
    manager.note_render_completed()
    await manager.acquire()

    assert engine.chromium.launch.await_count == 2


@pytest.mark.asyncio
async def test_shutdown_stops_playwright_and_context_manager(fakes):
    browser = fakes.browser()
    factory, engine = fakes.playwright([browser])
    async with BrowserLifecycleManager(config=None, playwright_factory=factory) as manager:
        assert manager.is_running
    browser.close.assert_awaited_once()
    engine.stop.assert_awaited_once()
    assert manager.playwright is None


@pytest.mark.asyncio
async def test_signal_closes_browser_then_exits_once(fakes):
    browser = fakes.browser()
    factory, _ = fakes.playwright([browser])
    manager = BrowserLifecycleManager(config=None, playwright_factory=factory)
    await manager.acquire()
    exits = []

    loop = asyncio.get_running_loop()
    task = manager.handle_signal(signal.SIGTERM, loop, exits.append)
    assert manager.handle_signal(signal.SIGTERM, loop, exits.append) is None
    await task

    browser.close.assert_awaited_once()
    assert exits == [signal.SIGTERM]


def test_describe_shape():
    snapshot = BrowserLifecycleManager(config=None).describe()
    assert snapshot == {
        "browserType": "chromium",
        "running": False,
        "launches": 0,
        "uptime": None,
        "rendersSinceLaunch": 0,
        "rotationPending": False,
    }
