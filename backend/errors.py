from fastapi import HTTPException, status


class FestError(HTTPException):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str):
        super().__init__(status_code=self.status_code, detail=detail)


class NotFound(FestError):
    status_code = status.HTTP_404_NOT_FOUND


class NotRegistered(FestError):
    status_code = status.HTTP_400_BAD_REQUEST


class NotConfirmed(FestError):
    status_code = status.HTTP_400_BAD_REQUEST


class AlreadyConfirmed(FestError):
    status_code = status.HTTP_409_CONFLICT


class AlreadyRegistered(FestError):
    status_code = status.HTTP_409_CONFLICT


class NoCapacity(FestError):
    status_code = status.HTTP_409_CONFLICT


class Forbidden(FestError):
    status_code = status.HTTP_403_FORBIDDEN


class InvalidArgument(FestError):
    status_code = status.HTTP_400_BAD_REQUEST


class VerificationLocked(FestError):
    status_code = status.HTTP_409_CONFLICT
