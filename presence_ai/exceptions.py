class PresenceError(Exception):
    """Base exception for the presence authorization core."""


class DecodeError(PresenceError):
    """Raised when a raw camera frame has no usable pixel layout."""


class PreprocessError(PresenceError):
    """Raised when a face region cannot be turned into a model input tensor."""


class DetectorError(PresenceError):
    """Raised when face detection initialization or inference fails."""


class InferenceError(PresenceError):
    """Raised when embedding generation fails."""


class InferenceNotReadyError(InferenceError):
    """Raised when the embedding model is not loaded."""


class InvalidCaptureError(PresenceError):
    """Raised when a capture produced a degenerate embedding."""


class NotEnrolledError(PresenceError):
    """Raised when a subject has no stored face template."""


class CampusConfigError(PresenceError):
    """Raised when the campus configuration record is missing or partial."""


class PersistenceError(PresenceError):
    """Raised when a database read or write fails."""


class CameraError(PresenceError):
    """Raised when webcam access fails."""
