class FinFocusError(Exception):
    """Base exception for FinFocus."""

    pass


class PluginError(FinFocusError):
    """Base exception for plugin related errors."""

    def __init__(self, message: str, plugin_name: str = ""):
        super().__init__(message)
        self.plugin_name = plugin_name


class PluginLaunchError(PluginError):
    """Raised when a plugin process cannot be started or connected to."""

    pass


class PluginBindTimeoutError(PluginLaunchError):
    """Raised when a plugin does not accept connections within the bind timeout."""

    pass


class PortAllocationError(PluginLaunchError):
    """Raised when no local port could be reserved for a plugin."""

    pass


class PluginIncompatibleError(PluginError):
    """Raised in strict mode when a plugin's spec version has a different major version."""

    pass


class PluginCallError(PluginError):
    """Raised when a plugin RPC fails (transport error, timeout, remote error, bad payload)."""

    def __init__(self, message: str, plugin_name: str = "", method: str = "", status_code: int = 0):
        super().__init__(message, plugin_name=plugin_name)
        self.method = method
        self.status_code = status_code


class PluginUnimplementedError(PluginCallError):
    """Raised when a plugin does not implement an optional RPC."""

    pass


class RequestValidationError(FinFocusError):
    """Raised by pre-flight validation when a request is missing a required field."""

    def __init__(self, message: str, field: str = ""):
        super().__init__(message)
        self.field = field


class EstimationInputError(FinFocusError):
    """Raised when state-based estimation inputs are invalid."""

    pass


class NoCostSourceError(FinFocusError):
    """Raised when no plugin could be started and no local fallback is available."""

    pass


class AggregationError(FinFocusError):
    """Raised when results cannot be aggregated (mixed currencies, bad grouping)."""

    pass
