"""
Value types shared by the core and the transport layer.

- `RenderResult`: the immutable product of a successful render.
- `RenderOutcome`: the tagged result returned by the orchestrator; either
  carries a `RenderResult` or the exception that ended the request.
- `StatusEvent`: an ephemeral event fanned out to status/ping observers.
"""
import dataclasses
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from url_render_service.core.exceptions import RenderServiceError
from url_render_service.core.status import ProcessStatus


@dataclass(frozen=True)
class RenderResult:
    """HTML, screenshot path and timing for one rendered URL."""
    html: str
    screenshot: str
    time_taken: float
    url: str

    def with_screenshot(self, screenshot: str) -> "RenderResult":
        """Returns a copy pointing at a different screenshot location (e.g. a public URL)."""
        return dataclasses.replace(self, screenshot=screenshot)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "html": self.html,
            "screenshot": self.screenshot,
            "timeTaken": self.time_taken,
            "url": self.url,
        }


@dataclass(frozen=True)
class RenderOutcome:
    """
    Result envelope of a render attempt.

    Exactly one of `data` / `error` is set. `to_dict()` produces the wire shape
    `{success, data?, error?}` used by both the HTTP and socket transports.
    """
    success: bool
    data: Optional[RenderResult] = None
    error: Optional[RenderServiceError] = None

    @classmethod
    def ok(cls, data: RenderResult) -> "RenderOutcome":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: RenderServiceError) -> "RenderOutcome":
        return cls(success=False, error=error)

    @property
    def error_message(self) -> Optional[str]:
        return self.error.detail if self.error is not None else None

    def map_data(self, fn) -> "RenderOutcome":
        """Applies `fn` to the carried `RenderResult`; failures pass through unchanged."""
        if self.data is None:
            return self
        return dataclasses.replace(self, data=fn(self.data))

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"success": self.success}
        if self.data is not None:
            body["data"] = self.data.to_dict()
        if self.error is not None:
            body["error"] = self.error.detail
        return body


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class StatusEvent:
    """
    A status or ping event.

    `created_at` and `time_taken` are stamped by the broadcaster at push time;
    `time_taken` is the number of seconds since the broadcaster's previous push.
    """
    type: str
    data: Optional[ProcessStatus] = None
    created_at: datetime = field(default_factory=_utcnow)
    time_taken: Optional[float] = None

    @classmethod
    def status(cls, status: ProcessStatus) -> "StatusEvent":
        return cls(type="status", data=ProcessStatus(status))

    @classmethod
    def ping(cls) -> "StatusEvent":
        return cls(type="ping")

    def stamped(self, created_at: datetime, time_taken: Optional[float]) -> "StatusEvent":
        return dataclasses.replace(self, created_at=created_at, time_taken=time_taken)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"type": self.type, "createdAt": self.created_at.isoformat()}
        if self.data is not None:
            body["data"] = self.data.value
        if self.time_taken is not None:
            body["timeTaken"] = self.time_taken
        return body
