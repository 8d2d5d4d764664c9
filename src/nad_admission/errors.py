"""Error taxonomy shared by the parser, classifier and validators."""

from __future__ import annotations


class NadAdmissionError(Exception):
    """Base class for every error raised by the admission core."""

    reason = "Error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ParseError(NadAdmissionError):
    """The network-selection annotation could not be parsed."""

    reason = "ParseError"


class EmptyAnnotationError(ParseError):
    reason = "EmptyAnnotation"


class MalformedAnnotationJSONError(ParseError):
    reason = "MalformedAnnotationJSON"


class InvalidNetworkObjectNameError(ParseError):
    reason = "InvalidNetworkObjectName"


class InvalidTokenFormatError(ParseError):
    reason = "InvalidTokenFormat"

    def __init__(self, token: str) -> None:
        super().__init__(
            "one or more items did not match comma-delimited format (must "
            "consist of alphanumeric characters or '-' and start and end "
            f"with an alphanumeric character), mismatch @ '{token}'"
        )
        self.token = token


class ValidationError(NadAdmissionError):
    """A name or CNI configuration does not have the required shape."""

    reason = "ValidationError"


class InvalidNameError(ValidationError):
    reason = "InvalidName"


class NotJSONError(ValidationError):
    reason = "NotJSON"


class InvalidConfigError(ValidationError):
    reason = "InvalidConfig"


class MissingPluginTypeError(ValidationError):
    reason = "MissingPluginType"


class InvalidCNIConfigShapeError(ValidationError):
    reason = "InvalidCNIConfigShape"


class CrossNamespaceReferenceDeniedError(ValidationError):
    reason = "CrossNamespaceReferenceDenied"


class AttachmentLookupError(NadAdmissionError, LookupError):
    """Fetching a network attachment definition failed for a reason other
    than it not existing. Callers treat the reference as unresolved."""

    reason = "LookupError"


class DispatchError(NadAdmissionError):
    """A queued key could not be processed before hitting the retry ceiling."""

    reason = "DispatchError"

    def __init__(self, key: str, cause: BaseException) -> None:
        super().__init__(f"failed to process {key!r}: {cause}")
        self.key = key
        self.cause = cause


class FatalIOError(NadAdmissionError, OSError):
    """Certificate material is unreadable; serving must stop."""

    reason = "FatalIOError"
