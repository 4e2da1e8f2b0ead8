class ConsentError(Exception):
    """Base error for consent operations; carries the HTTP status to answer with."""
    status_code = 400


class InvalidRequestError(ConsentError):
    pass


class NotAuthenticatedError(ConsentError):
    status_code = 401

    def __init__(self, message: str = "Please login first"):
        super().__init__(message)


class UnknownClientError(ConsentError):
    def __init__(self, message: str = "Invalid client_id"):
        super().__init__(message)


class ApplicationMismatchError(ConsentError):
    def __init__(self, message: str = "Invalid application"):
        super().__init__(message)


class UserNotFoundError(ConsentError):
    status_code = 404

    def __init__(self, message: str = "The user doesn't exist"):
        super().__init__(message)


class PersistenceError(ConsentError):
    status_code = 500


class IssuanceError(ConsentError):
    pass


class InvalidScopeError(ConsentError):
    pass
