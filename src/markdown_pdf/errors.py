from __future__ import annotations


class ConversionError(RuntimeError):
    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code


class ValidationError(ConversionError):
    def __init__(self, message: str) -> None:
        super().__init__("INVALID_INPUT", message)


class ConfigurationError(ConversionError):
    def __init__(self, message: str) -> None:
        super().__init__("CONFIG", message)


class SessionStateError(ConversionError):
    def __init__(self, message: str) -> None:
        super().__init__("SESSION_STATE", message)


class RenderError(ConversionError):
    """Raised when a stage of the browser pipeline fails."""


class AssetServerError(OSError):
    """Raised when the local image server cannot bind its socket."""


__all__ = [
    "AssetServerError",
    "ConfigurationError",
    "ConversionError",
    "RenderError",
    "SessionStateError",
    "ValidationError",
]
