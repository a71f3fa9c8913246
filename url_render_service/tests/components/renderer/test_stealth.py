import random
from unittest.mock import AsyncMock, MagicMock

import pytest

from url_render_service.components.renderer.stealth import (
    LOCALES,
    TIMEZONES,
    USER_AGENTS,
    FingerprintPolicy,
    NullFingerprintPolicy,
    build_init_script,
    fingerprint_policy_from_config,
)


def test_context_options_drawn_from_pools():
    options = FingerprintPolicy(rng=random.Random(7)).context_options()
    assert options["user_agent"] in USER_AGENTS
    assert options["locale"] in LOCALES
    assert options["timezone_id"] in TIMEZONES
    assert set(options["viewport"]) == {"width", "height"}
    assert options["extra_http_headers"]["Accept-Language"].startswith(options["locale"])


def test_seeded_policies_are_reproducible():
    assert FingerprintPolicy(rng=random.Random(3)).context_options() == FingerprintPolicy(rng=random.Random(3)).context_options()


def test_init_script_overrides_webdriver():
    script = build_init_script(hardware_concurrency=8, device_memory=8, languages=["zh-CN", "zh"])
    assert "webdriver" in script
    assert "'zh-CN'" in script


@pytest.mark.asyncio
async def test_apply_installs_init_script():
    context = MagicMock()
    context.add_init_script = AsyncMock()
    policy = FingerprintPolicy(rng=random.Random(1))
    await policy.apply(context, policy.context_options())
    context.add_init_script.assert_awaited_once()


@pytest.mark.asyncio
async def test_null_policy_is_inert():
    context = MagicMock()
    context.add_init_script = AsyncMock()
    policy = NullFingerprintPolicy()
    assert policy.context_options() == {}
    await policy.apply(context, {})
    context.add_init_script.assert_not_awaited()


def test_policy_from_config(mock_config):
    assert isinstance(fingerprint_policy_from_config(None), FingerprintPolicy)
    disabled = fingerprint_policy_from_config(mock_config(settings={"renderer": {"stealth": {"enabled": False}}}))
    assert isinstance(disabled, NullFingerprintPolicy)
