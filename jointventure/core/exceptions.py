from fastapi import HTTPException, status


class TripNotFound(HTTPException):
    def __init__(self, detail: str = "Trip not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class ProfileNotFound(HTTPException):
    def __init__(self, detail: str = "Profile not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class NotTripHost(HTTPException):
    """Raised when someone other than the trip's creator tries a host-only action."""

    def __init__(self, detail: str = "Only the trip host can do this"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class TransitionRejected(HTTPException):
    """A participation state change that the workflow does not allow."""

    def __init__(self, detail: str, status_code: int = status.HTTP_409_CONFLICT):
        super().__init__(status_code=status_code, detail=detail)


class AlreadyRequested(TransitionRejected):
    def __init__(self, detail: str = "You have already requested to join this trip"):
        super().__init__(detail)


class StaleTransition(TransitionRejected):
    """The row changed between read and conditional write."""

    def __init__(self, detail: str = "This request has already been handled"):
        super().__init__(detail)


class ChatAccessDenied(HTTPException):
    def __init__(self, detail: str = "Only approved members can use the trip chat"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)
