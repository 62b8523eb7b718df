"""
All exceptions raised by subfilter that a host might want to handle derive from
SubfilterException. Failures that only concern a single response are logged
instead of raised, so that one broken backend response does not take down the
middleware.
"""


class SubfilterException(Exception):
    """
    Base class for all exceptions thrown by subfilter.
    """

    def __init__(self, message=None):
        super().__init__(message)


class OptionsError(SubfilterException):
    """
    The middleware configuration is malformed or leaves nothing to do.
    """


class HijackError(SubfilterException):
    """
    Raised when a handler asks to hijack a connection whose sink cannot be hijacked.
    """
