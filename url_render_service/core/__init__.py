from .config import get_config, config_manager, ConfigurationManager, ConfigError, ConfigFileNotFoundError, InvalidYamlError
from .exceptions import (
    RenderServiceError,
    ConfigurationError,
    ValidationError,
    BusyError,
    ComponentError,
    RendererError,
    BrowserLaunchError,
    NavigationError,
    ReadinessError,
    StorageError,
    BroadcastError,
    ResourceCleanupError,
    OperationsError,
)
from .logger import setup_logging, get_logger
from .models import RenderOutcome, RenderResult, StatusEvent
from .status import ProcessGate, ProcessStatus

__all__ = [
    # Config
    "get_config",
    "config_manager",
    "ConfigurationManager",
    "ConfigError",
    "ConfigFileNotFoundError",
    "InvalidYamlError",
    # Logger
    "setup_logging",
    "get_logger",
    # Exceptions
    "RenderServiceError",
    "ConfigurationError",
    "ValidationError",
    "BusyError",
    "ComponentError",
    "RendererError",
    "BrowserLaunchError",
    "NavigationError",
    "ReadinessError",
    "StorageError",
    "BroadcastError",
    "ResourceCleanupError",
    "OperationsError",
    # Models
    "RenderOutcome",
    "RenderResult",
    "StatusEvent",
    # Status
    "ProcessGate",
    "ProcessStatus",
]
