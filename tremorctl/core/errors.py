"""Domain-specific errors for tremorctl."""


class TremorctlError(Exception):
    """Base error for tremorctl."""


class ProfileValidationError(TremorctlError):
    """Raised when a profile file does not conform to schema or semantics."""


class ProfileLoadError(TremorctlError):
    """Raised when loading profile sources fails."""


class ProfileSelectionError(TremorctlError):
    """Raised when a requested profile id is not known."""


class DecodeError(TremorctlError):
    """Base error for characteristic payloads that cannot be decoded."""


class PayloadTooShortError(DecodeError):
    """Raised when a payload carries fewer than two bytes."""


class TransportError(TremorctlError):
    """Base transport error."""


class TransportConnectError(TransportError):
    """Raised when the BLE adapter or peripheral cannot be reached."""


class TransportNotifyError(TransportError):
    """Raised when enabling or disabling notifications fails."""
