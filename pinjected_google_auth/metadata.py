"""Compute metadata server access and the compute-environment probe."""

import asyncio
from typing import Any, Dict, Optional

import httpx
from loguru import logger
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt

from pinjected_google_auth import env_vars
from pinjected_google_auth.collaborators import AuthCollaborators
from pinjected_google_auth.exceptions import RequestError, UnexpectedEnvironmentError
from pinjected_google_auth.transport import a_send

INSTANCE_PATH = f"{env_vars.METADATA_BASE_PATH}/instance"
SERVICE_ACCOUNTS_PATH = f"{INSTANCE_PATH}/service-accounts/"
PROJECT_ID_PATH = f"{env_vars.METADATA_BASE_PATH}/project/project-id"
CLUSTER_NAME_PATH = f"{INSTANCE_PATH}/attributes/cluster-name"


def token_path(service_account: str = "default") -> str:
    return f"{SERVICE_ACCOUNTS_PATH}{service_account}/token"


def _is_transient(e: BaseException) -> bool:
    return isinstance(e, RequestError) and e.is_transient


class MetadataClient:
    def __init__(self, collaborators: AuthCollaborators):
        self.collaborators = collaborators

    @property
    def host(self) -> str:
        return (
            self.collaborators.getenv(env_vars.GCE_METADATA_HOST)
            or env_vars.DEFAULT_METADATA_HOST
        )

    def url(self, path: str) -> str:
        return f"http://{self.host}{path}"

    async def a_get(self, path: str, params: Optional[Dict[str, str]] = None):
        return await a_send(
            self.collaborators.http_client,
            "GET",
            self.url(path),
            headers=dict(env_vars.METADATA_HEADERS),
            params=params,
        )

    async def a_instance(self) -> httpx.Response:
        return await self.a_get(INSTANCE_PATH)

    async def a_project_id(self) -> str:
        response = await self.a_get(PROJECT_ID_PATH)
        return response.text.strip()

    async def a_service_accounts(self) -> Dict[str, Any]:
        response = await self.a_get(SERVICE_ACCOUNTS_PATH, params={"recursive": "true"})
        return response.json()

    async def a_service_account_email(self, service_account: str = "default") -> str:
        """
        Look up the email of one of the instance's service accounts.

        Raises:
            RequestError: the listing could not be fetched
            KeyError: the listing does not contain the account or its email
        """
        accounts = await self.a_service_accounts()
        account = accounts.get(service_account) if isinstance(accounts, dict) else None
        if not account or not account.get("email"):
            raise KeyError(
                f"metadata service account listing has no email for '{service_account}'"
            )
        return account["email"]

    async def a_token(self, service_account: str = "default", scopes=None) -> Dict[str, Any]:
        params = {"scopes": ",".join(scopes)} if scopes else None
        response = await self.a_get(token_path(service_account), params=params)
        return response.json()

    async def a_is_cluster(self) -> bool:
        try:
            await self.a_get(CLUSTER_NAME_PATH)
        except RequestError:
            return False
        return True


class EnvironmentProbe:
    """
    Decides once whether this process runs inside the compute environment.

    The answer is ``None`` until the first successful probe and never changes
    afterwards. Concurrent callers share the probe in flight.
    """

    def __init__(self, metadata: MetadataClient):
        self.metadata = metadata
        self.is_compute: Optional[bool] = None
        self._lock = asyncio.Lock()

    async def a_check_is_compute(self) -> bool:
        if self.is_compute is not None:
            return self.is_compute
        async with self._lock:
            if self.is_compute is None:
                self.is_compute = await self._a_probe()
                logger.debug(f"compute environment probe result: {self.is_compute}")
        return self.is_compute

    async def _a_probe(self) -> bool:
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception(_is_transient),
                stop=stop_after_attempt(2),
                reraise=True,
            ):
                with attempt:
                    retrying = attempt.retry_state.attempt_number > 1
                    if retrying:
                        logger.debug("retrying compute environment probe after server error")
                    try:
                        await self.metadata.a_instance()
                    except (httpx.ConnectError, httpx.ConnectTimeout) as e:
                        # the host answered the first attempt, so it is not absent
                        if retrying:
                            raise UnexpectedEnvironmentError(
                                f"Unexpected error determining execution environment: {e}"
                            ) from e
                        raise
        except (httpx.ConnectError, httpx.ConnectTimeout) as e:
            logger.debug(f"metadata server unreachable: {e}")
            return False
        except (RequestError, httpx.HTTPError) as e:
            raise UnexpectedEnvironmentError(
                f"Unexpected error determining execution environment: {e}"
            ) from e
        return True
