"""Token acquisition protocols, one per credential kind that issues tokens."""

from typing import TYPE_CHECKING, Any, Dict, List, Optional

from google.auth import crypt, jwt
from loguru import logger

from pinjected_google_auth import env_vars
from pinjected_google_auth.collaborators import AuthCollaborators
from pinjected_google_auth.exceptions import TokenRefreshFailed
from pinjected_google_auth.metadata import MetadataClient
from pinjected_google_auth.token_cache import Token
from pinjected_google_auth.transport import a_send

if TYPE_CHECKING:
    from pinjected_google_auth.credentials import AuthorizedUserInfo, ServiceAccountInfo

JWT_BEARER_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:jwt-bearer"
ASSERTION_LIFETIME_SECS = 3600


def _token_from_response(data: Dict[str, Any], now_millis: int) -> Token:
    access_token = data.get("access_token")
    if not access_token:
        raise TokenRefreshFailed(f"token response did not contain an access_token: {sorted(data)}")
    expires_in = data.get("expires_in")
    expiry = None if expires_in is None else now_millis + int(expires_in) * 1000
    return Token(access_token=access_token, expiry_epoch_millis=expiry)


def build_assertion(
    info: "ServiceAccountInfo",
    now_secs: int,
    scopes: Optional[List[str]] = None,
    subject: Optional[str] = None,
) -> str:
    signer = crypt.RSASigner.from_string(info.private_key, key_id=info.private_key_id)
    payload = {
        "iss": info.client_email,
        "scope": " ".join(scopes or [env_vars.CLOUD_PLATFORM_SCOPE]),
        "aud": info.token_uri,
        "iat": now_secs,
        "exp": now_secs + ASSERTION_LIFETIME_SECS,
    }
    if subject:
        payload["sub"] = subject
    return jwt.encode(signer, payload).decode("utf-8")


async def a_jwt_bearer_grant(
    collaborators: AuthCollaborators,
    info: "ServiceAccountInfo",
    scopes: Optional[List[str]] = None,
    subject: Optional[str] = None,
) -> Token:
    now = collaborators.clock.now_millis()
    assertion = build_assertion(info, now // 1000, scopes=scopes, subject=subject)
    logger.info(f"requesting access token for service account {info.client_email}")
    response = await a_send(
        collaborators.http_client,
        "POST",
        info.token_uri,
        data={"grant_type": JWT_BEARER_GRANT_TYPE, "assertion": assertion},
    )
    return _token_from_response(response.json(), now)


async def a_refresh_token_grant(
    collaborators: AuthCollaborators,
    info: "AuthorizedUserInfo",
) -> Token:
    now = collaborators.clock.now_millis()
    logger.info(f"refreshing user access token for client {info.client_id}")
    response = await a_send(
        collaborators.http_client,
        "POST",
        info.token_uri,
        data={
            "grant_type": "refresh_token",
            "client_id": info.client_id,
            "client_secret": info.client_secret,
            "refresh_token": info.refresh_token,
        },
    )
    return _token_from_response(response.json(), now)


async def a_metadata_token(
    collaborators: AuthCollaborators,
    service_account: str = "default",
    scopes: Optional[List[str]] = None,
) -> Token:
    now = collaborators.clock.now_millis()
    logger.info(f"requesting access token from metadata server for '{service_account}'")
    data = await MetadataClient(collaborators).a_token(service_account, scopes=scopes)
    return _token_from_response(data, now)
