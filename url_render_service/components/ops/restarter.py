"""
Restarts the whole application through an external process manager.

The command (e.g. `["pm2", "restart", "url-render-service"]`) comes from
`ops.restart_command`. It runs as a subprocess without a shell; its exit code
and trimmed output are returned to the caller.
"""
import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional, Sequence

from url_render_service.core.exceptions import OperationsError
from url_render_service.core.logger import get_logger

if TYPE_CHECKING:
    from url_render_service.core.config import ConfigurationManager

logger = get_logger(__name__)


@dataclass(frozen=True)
class RestartResult:
    command: List[str]
    returncode: int
    output: str


class ProcessRestarter:
    DEFAULT_TIMEOUT = 30.0  # Seconds

    def __init__(self, config: Optional['ConfigurationManager'] = None, command: Optional[Sequence[str]] = None):
        if command is None and config:
            command = config.get('ops.restart_command', []) or []
        self.command: List[str] = [str(part) for part in (command or [])]

    @property
    def configured(self) -> bool:
        return bool(self.command)

    async def restart(self, timeout: float = DEFAULT_TIMEOUT) -> RestartResult:
        """
        Runs the restart command and waits for it to finish.

        Raises:
            OperationsError: If no command is configured, it cannot be started,
                             it times out, or it exits non-zero.
        """
        if not self.configured:
            raise OperationsError("Restart command is not configured")
        logger.warning(f"Restarting application: {' '.join(self.command)}")
        try:
            process = await asyncio.create_subprocess_exec(
                *self.command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as e:
            raise OperationsError(f"Failed to start restart command: {e}", original_exception=e)
        try:
            stdout, _ = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError as e:
            process.kill()
            await process.wait()
            raise OperationsError(f"Restart command timed out after {timeout}s", original_exception=e)

        output = (stdout or b"").decode("utf-8", errors="replace").strip()[-2000:]
        result = RestartResult(command=list(self.command), returncode=process.returncode, output=output)
        if process.returncode != 0:
            logger.error(f"Restart command exited with {process.returncode}: {output}")
            raise OperationsError(f"Restart command exited with code {process.returncode}")
        logger.info("Restart command completed.")
        return result
