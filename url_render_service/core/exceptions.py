"""
Custom exception classes for the URL Render Service.

Every failure the core can produce is expressed as a subclass of
`RenderServiceError`. The render orchestrator converts these into a uniform
result envelope, so none of them is expected to reach the HTTP layer.
"""
from typing import Optional


class RenderServiceError(Exception):
    """
    Base class for all custom exceptions in the URL Render Service.

    Attributes:
        message (str): A human-readable description of the error.
    """
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"{self.__class__.__name__}: {self.message}"

    @property
    def detail(self) -> str:
        """The text reported to clients in the `error` field of a result envelope."""
        return self.message


# --- Configuration Related Exceptions ---
class ConfigurationError(RenderServiceError):
    """Raised for errors related to application configuration."""
    def __init__(self, message: str):
        super().__init__(message)


# --- Admission Related Exceptions ---
class ValidationError(RenderServiceError):
    """Raised when a render request carries a missing or malformed URL."""
    def __init__(self, message: str):
        super().__init__(message)


class BusyError(RenderServiceError):
    """Raised when a render is requested while another one is in flight."""
    def __init__(self, message: str = "Process is not idle"):
        super().__init__(message)


# --- Component Related Exceptions ---
class ComponentError(RenderServiceError):
    """
    A general base class for errors originating from within a specific component
    (e.g., Renderer, Storage, Broadcast).

    Attributes:
        component_name (str): Name of the component where the error originated.
        original_exception (Optional[Exception]): The underlying exception, if any.
    """
    def __init__(self, component_name: str, message: str, original_exception: Optional[Exception] = None):
        full_message = f"Error in component '{component_name}': {message}"
        super().__init__(full_message)
        self.component_name = component_name
        self.original_exception = original_exception
        self._detail = message

    @property
    def detail(self) -> str:
        return self._detail


class RendererError(ComponentError):
    """Raised for errors specific to the Renderer component (browser, page, navigation)."""
    def __init__(self, message: str, original_exception: Optional[Exception] = None):
        super().__init__(component_name="Renderer", message=message, original_exception=original_exception)


class BrowserLaunchError(RendererError):
    """Raised when the browser process cannot be started or does not start in time."""


class NavigationError(RendererError):
    """Raised when navigating a page fails (timeout, DNS failure, crash, disconnect)."""


class ReadinessError(RendererError):
    """Raised when the rendered document cannot be read back from the page."""


class StorageError(ComponentError):
    """Raised for errors specific to the Storage component (screenshot paths and files)."""
    def __init__(self, message: str, original_exception: Optional[Exception] = None):
        super().__init__(component_name="Storage", message=message, original_exception=original_exception)


class BroadcastError(ComponentError):
    """Raised for errors specific to the Broadcast component (observer sinks)."""
    def __init__(self, message: str, original_exception: Optional[Exception] = None):
        super().__init__(component_name="Broadcast", message=message, original_exception=original_exception)


class ResourceCleanupError(ComponentError):
    """
    Describes a failure while closing a page, context or browser.

    Cleanup errors are logged and never propagated to callers; the class exists so
    the log record carries a consistent type.
    """
    def __init__(self, resource: str, original_exception: Optional[Exception] = None):
        message = f"Failed to close {resource}"
        if original_exception:
            message += f": {original_exception}"
        super().__init__(component_name="Cleanup", message=message, original_exception=original_exception)
        self.resource = resource


class OperationsError(ComponentError):
    """Raised for errors in operational helpers (public IP lookup, process restarts)."""
    def __init__(self, message: str, original_exception: Optional[Exception] = None):
        super().__init__(component_name="Operations", message=message, original_exception=original_exception)
