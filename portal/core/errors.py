
class PortalError(Exception):
    """
    Base class for rejected input and illegal state changes.

    The message is shown to the requester verbatim, so keep it human readable.
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def code(self) -> str:
        return type(self).__name__


class InvalidDate(PortalError):
    pass


class InvalidRange(PortalError):
    pass


class MissingTime(PortalError):
    pass


class InvalidTime(PortalError):
    pass


class InvalidTimeFormat(InvalidTime):
    pass


class OverlapConflict(PortalError):
    pass


class InvalidTransition(PortalError):
    pass


class NegativeNetPay(PortalError):
    def __init__(self, message: str = "Net pay cannot be negative"):
        super().__init__(message)


class ValidationFailed(PortalError):
    pass
