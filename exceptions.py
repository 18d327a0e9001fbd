class LibraryError(Exception):
    """Base exception for circulation and fine errors.

    `status_code` is the HTTP status class the API answers with.
    """

    status_code = 500

    def __init__(self, msg: str):
        super().__init__(msg)
        self.msg = msg


class NotFoundError(LibraryError):
    """Item, membership, issue or fine does not exist."""

    status_code = 404


class UnavailableError(LibraryError):
    """No copies of the item are left to issue."""

    status_code = 400


class InvalidMembershipError(LibraryError):
    """Membership is unknown or not Active."""

    status_code = 400


class FinesOutstandingError(LibraryError):
    """Membership has unpaid fines, which blocks new issues."""

    status_code = 400


class NoActiveIssueError(LibraryError):
    """Return requested for a loan that is not open."""

    status_code = 404


class InternalError(LibraryError):
    """Unexpected store failure."""

    status_code = 500
