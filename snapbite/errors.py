"""Exception hierarchy shared across the analysis pipeline."""

from __future__ import annotations


class SnapbiteError(Exception):
    """Base class for all expected, user-reportable failures."""


class GatewayError(SnapbiteError):
    """The inference backend did not produce a usable response."""


class TransportError(GatewayError):
    """Network or HTTP failure reaching the inference backend."""

    def __init__(self, status_code: int | None, body: str) -> None:
        self.status_code = status_code
        self.body = body
        if status_code is None:
            message = f"Inference backend unreachable: {body}"
        else:
            message = f"Inference backend error: {status_code} - {body}"
        super().__init__(message)


class EmptyResponseError(GatewayError):
    """Backend replied 2xx but without the expected text field."""


class ParseError(SnapbiteError):
    """Backend text could not be interpreted as a food analysis.

    ``raw_text`` is always the exact text handed to the parser so callers can
    fall back to showing it.
    """

    def __init__(self, message: str, raw_text: str) -> None:
        self.raw_text = raw_text
        super().__init__(message)


class ClassifyError(SnapbiteError):
    """In-process classification failed."""


class ClassifierNotReadyError(ClassifyError):
    """Classification requested before the model finished loading."""


class ClassifierLoadError(ClassifyError):
    """The classifier model or its label table could not be loaded."""


class InvalidFrameError(ClassifyError):
    """The frame handed to the classifier is empty or undecodable."""


class DeviceError(SnapbiteError):
    """Camera acquisition failed.

    ``kind`` is one of ``permission_denied``, ``not_found`` or ``other``.
    """

    PERMISSION_DENIED = "permission_denied"
    NOT_FOUND = "not_found"
    OTHER = "other"

    def __init__(self, kind: str, message: str) -> None:
        self.kind = kind
        super().__init__(message)


class CaptureBlockedError(SnapbiteError):
    """A capture was requested while the view cannot accept one."""
