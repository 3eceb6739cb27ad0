from typing import List, Optional


class GoogleAuthError(RuntimeError):
    pass


class InvalidCredentialFormat(GoogleAuthError):
    pass


class CredentialFileUnreadable(GoogleAuthError):
    def __init__(self, msg: str, path: Optional[str] = None):
        super().__init__(msg)
        self.path = path


class UnexpectedEnvironmentError(GoogleAuthError):
    pass


class NoCredentialsFound(GoogleAuthError):
    pass


class ProjectIdNotFound(GoogleAuthError):
    pass


class TokenRefreshFailed(GoogleAuthError):
    pass


class SigningUnavailable(GoogleAuthError):
    pass


class RequestError(GoogleAuthError):
    def __init__(
        self,
        msg: str,
        status: int,
        code=None,
        errors: List[dict] = None,
    ):
        super().__init__(msg)
        self.status = status
        self.code = code if code is not None else str(status)
        if errors is None:
            errors = []
        self.errors = errors.copy()

    @property
    def is_transient(self) -> bool:
        return self.status >= 500

    def __repr__(self):
        return f"RequestError(status:{self.status},code:{self.code},message:{self})"
