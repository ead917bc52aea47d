"""Core exceptions shared by every MirrorKit subsystem."""


class MirrorError(Exception):
    """Base class for MirrorKit errors."""


class LogFormatError(MirrorError):
    """A wire node is malformed or carries the wrong discriminator."""


class CallbackResolutionError(MirrorError):
    """A callback cannot be traced back to the call that introduced it."""


class ValueCodecError(MirrorError):
    """A payload value cannot be represented in the wire format."""


class LogIntegrityError(MirrorError):
    """Base class for logs whose call/return structure is inconsistent."""


class UnmatchedReturnError(LogIntegrityError):
    """A call_return references a call that does not precede it."""


class DuplicateReturnError(LogIntegrityError):
    """A call has more than one call_return."""


class DanglingCallError(LogIntegrityError):
    """A call never returned (the recorded method probably raised)."""
