from .client import PluginClient, connect_plugin
from .process import PluginProcess, ProcessLauncher
from .registry import PluginInfo, PluginRegistry, PluginSession
from .version import SPEC_VERSION, CompatibilityNegotiator, CompatibilityReport, NegotiationState

__all__ = [
    "SPEC_VERSION",
    "CompatibilityNegotiator",
    "CompatibilityReport",
    "NegotiationState",
    "PluginClient",
    "PluginInfo",
    "PluginProcess",
    "PluginRegistry",
    "PluginSession",
    "ProcessLauncher",
    "connect_plugin",
]
