"""
Per-context fingerprint randomization.

Each render gets a fresh browser context with a randomly chosen user agent,
viewport, locale and timezone, plus an init script that patches the navigator
properties headless Chromium is usually detected by and adds faint noise to
canvas reads. None of this affects render correctness; `NullFingerprintPolicy`
turns it off.
"""
import random
from typing import TYPE_CHECKING, Any, Dict, Optional

from playwright.async_api import BrowserContext

from url_render_service.core.logger import get_logger

if TYPE_CHECKING:
    from url_render_service.core.config import ConfigurationManager

logger = get_logger(__name__)

USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/125.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/125.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/125.0.0.0 Safari/537.36",
]

VIEWPORTS = [
    {"width": 1920, "height": 1080},
    {"width": 1366, "height": 768},
    {"width": 1440, "height": 900},
    {"width": 1536, "height": 864},
    {"width": 1280, "height": 800},
]

LOCALES = ["zh-CN", "zh-CN", "en-US"]

TIMEZONES = ["Asia/Shanghai", "Asia/Hong_Kong", "Asia/Singapore"]


def build_init_script(hardware_concurrency: int, device_memory: int, languages: list) -> str:
    """Navigator overrides and canvas noise, parameterized per context."""
    languages_js = ", ".join(f"'{lang}'" for lang in languages)
    return f"""
Object.defineProperty(navigator, 'webdriver', {{ get: () => undefined }});
Object.defineProperty(navigator, 'languages', {{ get: () => [{languages_js}] }});
Object.defineProperty(navigator, 'hardwareConcurrency', {{ get: () => {hardware_concurrency} }});
Object.defineProperty(navigator, 'deviceMemory', {{ get: () => {device_memory} }});
Object.defineProperty(navigator, 'plugins', {{ get: () => [1, 2, 3, 4, 5] }});
window.chrome = window.chrome || {{ runtime: {{}} }};

const originalToDataURL = HTMLCanvasElement.prototype.toDataURL;
HTMLCanvasElement.prototype.toDataURL = function (...args) {{
  const ctx = this.getContext('2d');
  if (ctx && this.width > 0 && this.height > 0) {{
    const image = ctx.getImageData(0, 0, this.width, this.height);
    for (let i = 0; i < image.data.length; i += 97) {{
      image.data[i] = image.data[i] ^ 1;
    }}
    ctx.putImageData(image, 0, 0);
  }}
  return originalToDataURL.apply(this, args);
}};
"""


class FingerprintPolicy:
    """Randomizes context options and installs the stealth init script."""

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def context_options(self) -> Dict[str, Any]:
        locale = self.rng.choice(LOCALES)
        return {
            "user_agent": self.rng.choice(USER_AGENTS),
            "viewport": dict(self.rng.choice(VIEWPORTS)),
            "locale": locale,
            "timezone_id": self.rng.choice(TIMEZONES),
            "extra_http_headers": {"Accept-Language": f"{locale},{locale.split('-')[0]};q=0.9"},
        }

    def init_script(self, locale: str = "zh-CN") -> str:
        return build_init_script(
            hardware_concurrency=self.rng.choice([4, 8, 12, 16]),
            device_memory=self.rng.choice([4, 8, 16]),
            languages=[locale, locale.split("-")[0]],
        )

    async def apply(self, context: BrowserContext, options: Dict[str, Any]) -> None:
        await context.add_init_script(self.init_script(options.get("locale", "zh-CN")))
        logger.debug(f"Fingerprint applied: {options.get('user_agent')} {options.get('viewport')} {options.get('timezone_id')}")


class NullFingerprintPolicy(FingerprintPolicy):
    """Uses Playwright's default context settings."""

    def context_options(self) -> Dict[str, Any]:
        return {}

    async def apply(self, context: BrowserContext, options: Dict[str, Any]) -> None:
        return None


def fingerprint_policy_from_config(config: Optional['ConfigurationManager']) -> FingerprintPolicy:
    enabled = config.get('renderer.stealth.enabled', True) if config else True
    return FingerprintPolicy() if enabled else NullFingerprintPolicy()
