"""Signing of arbitrary payloads, locally or through the IAM signBlob API."""

import base64
from typing import Awaitable, Callable, Union
from urllib.parse import quote

from google.auth import crypt
from loguru import logger

from pinjected_google_auth import env_vars
from pinjected_google_auth.collaborators import AuthCollaborators
from pinjected_google_auth.credentials import Credential, CredentialKind
from pinjected_google_auth.exceptions import (
    InvalidCredentialFormat,
    ProjectIdNotFound,
    RequestError,
    SigningUnavailable,
)
from pinjected_google_auth.metadata import MetadataClient
from pinjected_google_auth.transport import a_send


def _to_bytes(payload: Union[bytes, str]) -> bytes:
    return payload.encode("utf-8") if isinstance(payload, str) else payload


def sign_locally(private_key: str, payload: Union[bytes, str]) -> str:
    """RSA-SHA256 (PKCS#1 v1.5) signature of the payload, base64 encoded."""
    try:
        signer = crypt.RSASigner.from_string(private_key)
    except ValueError as e:
        raise InvalidCredentialFormat(f"private key could not be loaded: {e}") from e
    return base64.b64encode(signer.sign(_to_bytes(payload))).decode("ascii")


def sign_blob_url(project_id: str, email: str) -> str:
    return (
        f"https://{env_vars.IAM_HOST}/v1/projects/{quote(project_id, safe='')}"
        f"/serviceAccounts/{quote(email, safe='@')}:signBlob"
    )


class Signer:
    def __init__(
        self,
        collaborators: AuthCollaborators,
        metadata: MetadataClient,
        a_project_id: Callable[[], Awaitable[str]],
    ):
        self.collaborators = collaborators
        self.metadata = metadata
        self.a_project_id = a_project_id

    async def a_sign(self, credential: Credential, payload: Union[bytes, str]) -> str:
        """
        Sign ``payload`` with whatever key the credential can reach.

        Returns:
            base64 text of the signature. Remote signatures are returned as
            the IAM API sent them.

        Raises:
            SigningUnavailable: no local key and no delegated identity
        """
        if credential.private_key:
            logger.debug(f"signing locally with {credential.describe()}")
            return sign_locally(credential.private_key, payload)

        if credential.kind is not CredentialKind.COMPUTE_METADATA:
            raise SigningUnavailable(
                f"cannot sign with {credential.describe()}: no private key and no delegated identity"
            )

        try:
            project_id = await self.a_project_id()
            email = await self.metadata.a_service_account_email(credential.info.service_account)
        except (ProjectIdNotFound, RequestError, KeyError) as e:
            raise SigningUnavailable(f"cannot resolve a delegated signing identity: {e}") from e

        token = await credential.a_get_access_token()
        logger.info(f"signing through IAM signBlob as {email}")
        response = await a_send(
            self.collaborators.http_client,
            "POST",
            sign_blob_url(project_id, email),
            headers={"Authorization": f"Bearer {token}"},
            json={"bytesToSign": base64.b64encode(_to_bytes(payload)).decode("ascii")},
        )
        try:
            return response.json()["signature"]
        except (ValueError, KeyError, TypeError) as e:
            raise SigningUnavailable(f"signBlob response did not contain a signature: {e}") from e
