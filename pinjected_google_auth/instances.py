"""pinjected bindings for the resolver and the values derived from it."""

from typing import Dict, Protocol, Union

from loguru import logger
from pinjected import design, injected, instance

from pinjected_google_auth.collaborators import AuthCollaborators
from pinjected_google_auth.google_auth import GoogleAuth, GoogleAuthOptions


@instance
def gcp_auth_options() -> GoogleAuthOptions:
    """Default options: resolve everything from the environment."""
    return GoogleAuthOptions()


@instance
def gcp_auth_collaborators() -> AuthCollaborators:
    return AuthCollaborators()


@instance
def google_auth(
    gcp_auth_options: GoogleAuthOptions,
    gcp_auth_collaborators: AuthCollaborators,
) -> GoogleAuth:
    """
    Singleton resolver for the design.

    Override ``gcp_auth_options`` to pin a key file or project, or
    ``gcp_auth_collaborators`` to swap the HTTP client, clock, or environment.
    """
    logger.info("Creating GoogleAuth resolver")
    return GoogleAuth(gcp_auth_options, gcp_auth_collaborators)


class AGcpAccessTokenProtocol(Protocol):
    async def __call__(self) -> str: ...


class AGcpProjectIdProtocol(Protocol):
    async def __call__(self) -> str: ...


class AGcpRequestHeadersProtocol(Protocol):
    async def __call__(self) -> Dict[str, str]: ...


class AGcpSignProtocol(Protocol):
    async def __call__(self, payload: Union[bytes, str]) -> str: ...


@injected(protocol=AGcpAccessTokenProtocol)
async def a_gcp_access_token(google_auth: GoogleAuth, /) -> str:
    return await google_auth.a_get_access_token()


@injected(protocol=AGcpProjectIdProtocol)
async def a_gcp_project_id(google_auth: GoogleAuth, /) -> str:
    return await google_auth.a_get_project_id()


@injected(protocol=AGcpRequestHeadersProtocol)
async def a_gcp_request_headers(google_auth: GoogleAuth, /) -> Dict[str, str]:
    return await google_auth.a_get_request_headers()


@injected(protocol=AGcpSignProtocol)
async def a_gcp_sign(google_auth: GoogleAuth, /, payload: Union[bytes, str]) -> str:
    """
    Sign a payload with the resolved identity.

    Args:
        payload: bytes or text to sign

    Returns:
        base64 text of the RSA-SHA256 signature
    """
    return await google_auth.a_sign(payload)


__design__ = design(
    gcp_auth_options=gcp_auth_options,
    gcp_auth_collaborators=gcp_auth_collaborators,
    google_auth=google_auth,
    a_gcp_access_token=a_gcp_access_token,
    a_gcp_project_id=a_gcp_project_id,
    a_gcp_request_headers=a_gcp_request_headers,
    a_gcp_sign=a_gcp_sign,
)
