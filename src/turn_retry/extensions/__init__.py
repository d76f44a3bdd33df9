"""Extension notification bus."""

from turn_retry.extensions.runner import ExtensionError, ExtensionHandler, ExtensionRunner

__all__ = ["ExtensionError", "ExtensionHandler", "ExtensionRunner"]
