"""Credential variants and their shared capability interface."""

from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from pinjected_google_auth import env_vars, grants
from pinjected_google_auth.collaborators import AuthCollaborators
from pinjected_google_auth.exceptions import InvalidCredentialFormat, TokenRefreshFailed
from pinjected_google_auth.token_cache import (
    DEFAULT_EAGER_REFRESH_THRESHOLD_MILLIS,
    TokenCache,
)


class CredentialKind(Enum):
    SERVICE_ACCOUNT_KEY = "service_account"
    USER_REFRESH_TOKEN = "authorized_user"
    COMPUTE_METADATA = "compute_metadata"
    API_KEY = "api_key"
    IAM_DELEGATED = "iam"


class _Info(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class ServiceAccountInfo(_Info):
    client_email: str = Field(min_length=1)
    private_key: str = Field(min_length=1)
    private_key_id: Optional[str] = None
    client_id: Optional[str] = None
    project_id: Optional[str] = None
    token_uri: str = env_vars.DEFAULT_TOKEN_URI


class AuthorizedUserInfo(_Info):
    client_id: str = Field(min_length=1)
    client_secret: str = Field(min_length=1)
    refresh_token: str = Field(min_length=1)
    quota_project_id: Optional[str] = None
    token_uri: str = env_vars.DEFAULT_TOKEN_URI


class ComputeMetadataInfo(_Info):
    service_account: str = "default"


class ApiKeyInfo(_Info):
    api_key: str = Field(min_length=1)


class IAMDelegatedInfo(_Info):
    selector: str
    token: str


CredentialInfo = Union[
    ServiceAccountInfo, AuthorizedUserInfo, ComputeMetadataInfo, ApiKeyInfo, IAMDelegatedInfo
]

_INFO_TYPES = {
    CredentialKind.SERVICE_ACCOUNT_KEY: ServiceAccountInfo,
    CredentialKind.USER_REFRESH_TOKEN: AuthorizedUserInfo,
    CredentialKind.COMPUTE_METADATA: ComputeMetadataInfo,
    CredentialKind.API_KEY: ApiKeyInfo,
    CredentialKind.IAM_DELEGATED: IAMDelegatedInfo,
}


class Credential:
    """
    One resolved credential. The kind is fixed at construction.

    Every kind answers the same questions (access token, request headers,
    local signing, description); the answers are chosen by matching on
    ``kind`` rather than by subclassing.
    """

    def __init__(
        self,
        kind: CredentialKind,
        info: CredentialInfo,
        collaborators: AuthCollaborators,
        scopes: Optional[List[str]] = None,
        subject: Optional[str] = None,
        eager_refresh_threshold_millis: int = DEFAULT_EAGER_REFRESH_THRESHOLD_MILLIS,
    ):
        if not isinstance(info, _INFO_TYPES[kind]):
            raise TypeError(f"{kind} requires {_INFO_TYPES[kind].__name__}, got {type(info).__name__}")
        self._kind = kind
        self.info = info
        self.collaborators = collaborators
        self.scopes = scopes
        self.subject = subject
        self.token_cache = TokenCache(eager_refresh_threshold_millis)

    @property
    def kind(self) -> CredentialKind:
        return self._kind

    @property
    def eager_refresh_threshold_millis(self) -> int:
        return self.token_cache.eager_refresh_threshold_millis

    @property
    def email(self) -> Optional[str]:
        if self.kind is CredentialKind.SERVICE_ACCOUNT_KEY:
            return self.info.client_email
        return None

    @property
    def private_key(self) -> Optional[str]:
        if self.kind is CredentialKind.SERVICE_ACCOUNT_KEY:
            return self.info.private_key
        return None

    @property
    def client_id(self) -> Optional[str]:
        if self.kind in (CredentialKind.SERVICE_ACCOUNT_KEY, CredentialKind.USER_REFRESH_TOKEN):
            return self.info.client_id
        return None

    @property
    def project_id(self) -> Optional[str]:
        if self.kind is CredentialKind.SERVICE_ACCOUNT_KEY:
            return self.info.project_id
        return None

    async def a_get_access_token(self) -> str:
        return await self.token_cache.a_get(self.collaborators.clock, self._a_refresh)

    async def _a_refresh(self):
        match self.kind:
            case CredentialKind.SERVICE_ACCOUNT_KEY:
                return await grants.a_jwt_bearer_grant(
                    self.collaborators, self.info, scopes=self.scopes, subject=self.subject
                )
            case CredentialKind.USER_REFRESH_TOKEN:
                return await grants.a_refresh_token_grant(self.collaborators, self.info)
            case CredentialKind.COMPUTE_METADATA:
                return await grants.a_metadata_token(
                    self.collaborators, self.info.service_account, scopes=self.scopes
                )
            case _:
                raise TokenRefreshFailed(f"{self.kind.name} credentials do not issue access tokens")

    async def a_get_request_headers(self) -> Dict[str, str]:
        match self.kind:
            case CredentialKind.IAM_DELEGATED:
                return {
                    "x-goog-iam-authority-selector": self.info.selector,
                    "x-goog-iam-authorization-token": self.info.token,
                }
            case CredentialKind.API_KEY:
                # the key travels as a query parameter
                return {}
            case _:
                token = await self.a_get_access_token()
                return {"Authorization": f"Bearer {token}"}

    def describe(self) -> str:
        match self.kind:
            case CredentialKind.SERVICE_ACCOUNT_KEY:
                return f"service account key for {self.info.client_email}"
            case CredentialKind.USER_REFRESH_TOKEN:
                return f"user refresh token for client {self.info.client_id}"
            case CredentialKind.COMPUTE_METADATA:
                return f"compute metadata service account '{self.info.service_account}'"
            case CredentialKind.API_KEY:
                return "api key"
            case CredentialKind.IAM_DELEGATED:
                return f"iam delegation for selector {self.info.selector}"

    def __repr__(self):
        return f"Credential({self.describe()})"


def _normalize_scopes(scopes: Union[str, List[str], None]) -> Optional[List[str]]:
    if scopes is None:
        return None
    if isinstance(scopes, str):
        return [scopes]
    return list(scopes)


def credential_from_json(
    json: Any,
    collaborators: AuthCollaborators,
    eager_refresh_threshold_millis: Optional[int] = None,
    scopes: Union[str, List[str], None] = None,
) -> Credential:
    """
    Build a credential from a parsed service-account or authorized-user JSON.

    A JSON without ``type`` is read as a service account key, matching the
    shape of files written before the field existed.

    Raises:
        InvalidCredentialFormat: not a dict, unknown ``type``, or required fields missing
    """
    if not isinstance(json, dict):
        raise InvalidCredentialFormat(
            f"Must pass in a JSON object containing the credentials, got {type(json).__name__}"
        )
    if not json:
        raise InvalidCredentialFormat("Must pass in a non-empty JSON object")
    threshold = (
        DEFAULT_EAGER_REFRESH_THRESHOLD_MILLIS
        if eager_refresh_threshold_millis is None
        else eager_refresh_threshold_millis
    )

    cred_type = json.get("type", CredentialKind.SERVICE_ACCOUNT_KEY.value)
    try:
        kind = CredentialKind(cred_type)
    except ValueError:
        kind = None
    if kind not in (CredentialKind.SERVICE_ACCOUNT_KEY, CredentialKind.USER_REFRESH_TOKEN):
        raise InvalidCredentialFormat(f"Unknown credential type: {cred_type!r}")

    try:
        info = _INFO_TYPES[kind].model_validate(json)
    except ValidationError as e:
        missing = sorted({str(err["loc"][0]) for err in e.errors() if err["loc"]})
        raise InvalidCredentialFormat(
            f"The incoming JSON object does not contain a valid {kind.value} credential "
            f"(problem fields: {', '.join(missing)})"
        ) from e

    if kind is CredentialKind.SERVICE_ACCOUNT_KEY:
        return Credential(
            kind,
            info,
            collaborators,
            scopes=_normalize_scopes(scopes),
            subject=json.get("subject"),
            eager_refresh_threshold_millis=threshold,
        )
    return Credential(kind, info, collaborators, eager_refresh_threshold_millis=threshold)


def compute_credential(
    collaborators: AuthCollaborators,
    scopes: Union[str, List[str], None] = None,
    eager_refresh_threshold_millis: Optional[int] = None,
) -> Credential:
    return Credential(
        CredentialKind.COMPUTE_METADATA,
        ComputeMetadataInfo(),
        collaborators,
        scopes=_normalize_scopes(scopes),
        eager_refresh_threshold_millis=(
            DEFAULT_EAGER_REFRESH_THRESHOLD_MILLIS
            if eager_refresh_threshold_millis is None
            else eager_refresh_threshold_millis
        ),
    )


def api_key_credential(
    api_key: str,
    collaborators: AuthCollaborators,
    eager_refresh_threshold_millis: Optional[int] = None,
) -> Credential:
    if not isinstance(api_key, str) or not api_key:
        raise InvalidCredentialFormat("Must provide an API Key string.")
    return Credential(
        CredentialKind.API_KEY,
        ApiKeyInfo(api_key=api_key),
        collaborators,
        eager_refresh_threshold_millis=(
            DEFAULT_EAGER_REFRESH_THRESHOLD_MILLIS
            if eager_refresh_threshold_millis is None
            else eager_refresh_threshold_millis
        ),
    )


def iam_credential(selector: str, token: str, collaborators: AuthCollaborators) -> Credential:
    return Credential(
        CredentialKind.IAM_DELEGATED,
        IAMDelegatedInfo(selector=selector, token=token),
        collaborators,
    )
