"""
Process status and single-flight admission control.

`ProcessGate` is a single-slot gate: at most one render can hold it. A request
that finds the gate occupied is rejected, never queued. The gate is an explicit
object injected into the orchestrator rather than module-level state.
"""
from enum import Enum


class ProcessStatus(str, Enum):
    """Global render status as reported to observers."""
    PROCESSING = "processing"
    IDLE = "idle"


class ProcessGate:
    """
    Single-slot admission gate for renders.

    The check-then-set in `try_enter` contains no suspension point, so under
    asyncio's cooperative scheduling it is atomic with respect to other tasks.
    """

    def __init__(self, status: ProcessStatus = ProcessStatus.IDLE):
        self._status = status

    @property
    def status(self) -> ProcessStatus:
        return self._status

    def get_status(self) -> ProcessStatus:
        return self._status

    def set_status(self, status: ProcessStatus) -> None:
        self._status = ProcessStatus(status)

    @property
    def is_idle(self) -> bool:
        return self._status is ProcessStatus.IDLE

    def try_enter(self) -> bool:
        """Moves IDLE -> PROCESSING. Returns False (and changes nothing) if already PROCESSING."""
        if self._status is not ProcessStatus.IDLE:
            return False
        self._status = ProcessStatus.PROCESSING
        return True

    def leave(self) -> None:
        self._status = ProcessStatus.IDLE

    def __repr__(self) -> str:
        return f"ProcessGate(status={self._status.value})"
