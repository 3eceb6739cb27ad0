"""Application Default Credentials resolution for pinjected."""

__version__ = "0.1.0"

from .collaborators import AuthCollaborators, CommandResult
from .credentials import Credential, CredentialKind
from .env_detect import GCPEnv
from .exceptions import (
    CredentialFileUnreadable,
    GoogleAuthError,
    InvalidCredentialFormat,
    NoCredentialsFound,
    ProjectIdNotFound,
    RequestError,
    SigningUnavailable,
    TokenRefreshFailed,
    UnexpectedEnvironmentError,
)
from .google_auth import ADCResponse, CredentialBody, GoogleAuth, GoogleAuthOptions
from .instances import (
    __design__,
    a_gcp_access_token,
    a_gcp_project_id,
    a_gcp_request_headers,
    a_gcp_sign,
    google_auth,
)
from .messages import DefaultProjectIdDeprecationWarning, ProblematicCredentialsWarning
from .token_cache import Token, TokenCache

__all__ = [
    "ADCResponse",
    "AuthCollaborators",
    "CommandResult",
    "Credential",
    "CredentialBody",
    "CredentialFileUnreadable",
    "CredentialKind",
    "DefaultProjectIdDeprecationWarning",
    "GCPEnv",
    "GoogleAuth",
    "GoogleAuthError",
    "GoogleAuthOptions",
    "InvalidCredentialFormat",
    "NoCredentialsFound",
    "ProblematicCredentialsWarning",
    "ProjectIdNotFound",
    "RequestError",
    "SigningUnavailable",
    "Token",
    "TokenCache",
    "TokenRefreshFailed",
    "UnexpectedEnvironmentError",
    "__design__",
    "a_gcp_access_token",
    "a_gcp_project_id",
    "a_gcp_request_headers",
    "a_gcp_sign",
    "google_auth",
]
