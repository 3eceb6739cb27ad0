"""The resolver tying credentials, project id, tokens and signing together."""

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, TextIO, Tuple, Union

import httpx
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from pinjected_google_auth.collaborators import AuthCollaborators
from pinjected_google_auth.credentials import Credential, CredentialKind
from pinjected_google_auth.env_detect import GCPEnv, a_detect_env
from pinjected_google_auth.exceptions import NoCredentialsFound, ProjectIdNotFound
from pinjected_google_auth.messages import DEFAULT_PROJECT_ID_DEPRECATED, warn_once
from pinjected_google_auth.metadata import EnvironmentProbe, MetadataClient
from pinjected_google_auth.project import ProjectIdResolver
from pinjected_google_auth.signer import Signer
from pinjected_google_auth.sources import CredentialSourceChain
from pinjected_google_auth.token_cache import DEFAULT_EAGER_REFRESH_THRESHOLD_MILLIS
from pinjected_google_auth.transport import a_send


class GoogleAuthOptions(BaseModel):
    model_config = ConfigDict(extra="forbid")

    project_id: Optional[str] = None
    key_filename: Optional[str] = None
    credentials: Optional[Dict[str, Any]] = None
    scopes: Union[str, List[str], None] = None
    eager_refresh_threshold_millis: int = Field(
        default=DEFAULT_EAGER_REFRESH_THRESHOLD_MILLIS, ge=0
    )


@dataclass
class ADCResponse:
    credential: Credential
    project_id: Optional[str]


@dataclass
class CredentialBody:
    client_email: str
    private_key: Optional[str] = None


class GoogleAuth:
    """
    Resolves a ready-to-use credential and everything derived from it.

    Each derived value (compute probe, credential, project id, environment)
    is resolved lazily on first use and kept for the lifetime of this
    instance. Separate instances share nothing except the process-wide
    advisory registry.

    Example:
        auth = GoogleAuth(GoogleAuthOptions(scopes=[...]))
        headers = await auth.a_get_request_headers()
    """

    def __init__(
        self,
        options: Optional[GoogleAuthOptions] = None,
        collaborators: Optional[AuthCollaborators] = None,
    ):
        self.options = options or GoogleAuthOptions()
        self.collaborators = collaborators or AuthCollaborators()
        self.metadata = MetadataClient(self.collaborators)
        self.probe = EnvironmentProbe(self.metadata)
        self.sources = CredentialSourceChain(
            self.collaborators,
            self.probe,
            scopes=self.options.scopes,
            eager_refresh_threshold_millis=self.options.eager_refresh_threshold_millis,
        )
        self.project_ids = ProjectIdResolver(
            self.collaborators,
            self.sources,
            self.probe,
            self.metadata,
            project_id=self.options.project_id,
            credentials=self.options.credentials,
            key_filename=self.options.key_filename,
            cached_credential=lambda: self.cached_credential,
        )
        self.signer = Signer(self.collaborators, self.metadata, self.a_get_project_id)
        self.cached_credential: Optional[Credential] = None
        self._json_content: Optional[Dict[str, Any]] = self.options.credentials
        self._env: Optional[GCPEnv] = None
        self._credential_lock = asyncio.Lock()

    @property
    def is_gce(self) -> Optional[bool]:
        return self.probe.is_compute

    def from_json(
        self,
        json: Dict[str, Any],
        eager_refresh_threshold_millis: Optional[int] = None,
    ) -> Credential:
        credential = self.sources.from_json(
            json, eager_refresh_threshold_millis=eager_refresh_threshold_millis
        )
        self._json_content = json
        return credential

    def from_stream(
        self, stream: TextIO, eager_refresh_threshold_millis: Optional[int] = None
    ) -> Credential:
        return self.sources.from_stream(
            stream, eager_refresh_threshold_millis=eager_refresh_threshold_millis
        )

    def from_api_key(
        self, api_key: str, eager_refresh_threshold_millis: Optional[int] = None
    ) -> Credential:
        return self.sources.from_api_key(
            api_key, eager_refresh_threshold_millis=eager_refresh_threshold_millis
        )

    async def a_check_is_gce(self) -> bool:
        return await self.probe.a_check_is_compute()

    async def a_get_client(
        self,
        credentials: Optional[Dict[str, Any]] = None,
        key_filename: Optional[str] = None,
        scopes: Union[str, List[str], None] = None,
    ) -> Credential:
        """
        Return the credential for this resolver, resolving it on first use.

        The arguments only take effect while nothing is cached yet; they
        override the matching constructor options for that resolution.
        """
        if self.cached_credential is not None:
            return self.cached_credential
        async with self._credential_lock:
            if self.cached_credential is None:
                credential = await self.sources.a_resolve(
                    credentials=credentials if credentials is not None else self.options.credentials,
                    key_filename=key_filename if key_filename is not None else self.options.key_filename,
                    scopes=scopes,
                )
                logger.info(f"resolved credential: {credential.describe()}")
                self.cached_credential = credential
        return self.cached_credential

    async def a_get_application_default(self) -> ADCResponse:
        credential = await self.a_get_client()
        try:
            project_id = await self.a_get_project_id()
        except ProjectIdNotFound:
            project_id = None
        return ADCResponse(credential=credential, project_id=project_id)

    async def a_get_project_id(self) -> str:
        return await self.project_ids.a_resolve()

    async def a_get_default_project_id(self) -> str:
        warn_once(DEFAULT_PROJECT_ID_DEPRECATED)
        return await self.a_get_project_id()

    async def a_get_env(self) -> GCPEnv:
        if self._env is None:
            self._env = await a_detect_env(self.collaborators, self.probe, self.metadata)
        return self._env

    async def a_get_access_token(self) -> str:
        credential = await self.a_get_client()
        return await credential.a_get_access_token()

    async def a_get_request_headers(self) -> Dict[str, str]:
        credential = await self.a_get_client()
        return await credential.a_get_request_headers()

    async def _a_authorization(self) -> Tuple[Dict[str, str], Dict[str, str]]:
        credential = await self.a_get_client()
        headers = await credential.a_get_request_headers()
        params = {}
        if credential.kind is CredentialKind.API_KEY:
            params["key"] = credential.info.api_key
        return headers, params

    async def a_authorize_request(self, request: Dict[str, Any]) -> Dict[str, Any]:
        """Return a copy of ``request`` with auth headers (and api key param) merged in."""
        headers, params = await self._a_authorization()
        authorized = dict(request)
        authorized["headers"] = {**(request.get("headers") or {}), **headers}
        if params:
            authorized["params"] = {**(request.get("params") or {}), **params}
        return authorized

    async def a_request(self, method: str, url: str, **kwargs) -> httpx.Response:
        headers, params = await self._a_authorization()
        kwargs["headers"] = {**(kwargs.get("headers") or {}), **headers}
        if params:
            kwargs["params"] = {**(kwargs.get("params") or {}), **params}
        return await a_send(self.collaborators.http_client, method, url, **kwargs)

    async def a_sign(self, payload: Union[bytes, str]) -> str:
        credential = await self.a_get_client()
        return await self.signer.a_sign(credential, payload)

    async def a_get_credentials(self) -> CredentialBody:
        """
        The client email (and private key, when local) of the active identity.

        Raises:
            NoCredentialsFound: no credential, or the credential has no email
        """
        if self._json_content is not None and self._json_content.get("client_email"):
            return CredentialBody(
                client_email=self._json_content["client_email"],
                private_key=self._json_content.get("private_key"),
            )
        credential = await self.a_get_client()
        if credential.kind is CredentialKind.COMPUTE_METADATA:
            try:
                email = await self.metadata.a_service_account_email(
                    credential.info.service_account
                )
            except KeyError as e:
                raise NoCredentialsFound(f"Failure from metadata server: {e}") from e
            return CredentialBody(client_email=email)
        if credential.email is None:
            raise NoCredentialsFound(
                f"The resolved {credential.describe()} has no client email."
            )
        return CredentialBody(client_email=credential.email, private_key=credential.private_key)

    async def aclose(self):
        await self.collaborators.aclose()
