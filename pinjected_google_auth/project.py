import asyncio
import json
from typing import Any, Callable, Dict, Optional

import httpx

from loguru import logger

from pinjected_google_auth import env_vars
from pinjected_google_auth.collaborators import AuthCollaborators
from pinjected_google_auth.credentials import Credential
from pinjected_google_auth.exceptions import ProjectIdNotFound, RequestError
from pinjected_google_auth.metadata import EnvironmentProbe, MetadataClient
from pinjected_google_auth.sources import CredentialSourceChain

GCLOUD_CONFIG_COMMAND = ("gcloud", "config", "config-helper", "--format", "json")

PROJECT_ID_NOT_FOUND_MESSAGE = (
    "Unable to detect a Project Id in the current environment. To learn more "
    "about authentication and Google APIs, visit: "
    "https://cloud.google.com/docs/authentication/getting-started"
)


class ProjectIdResolver:
    """
    Determines the active project id; the first answer is kept for good.

    Order: explicit value, GCLOUD_PROJECT, GOOGLE_CLOUD_PROJECT, the
    ``project_id`` of a credential file, the gcloud CLI's active
    configuration, and the metadata server when running on compute.
    """

    def __init__(
        self,
        collaborators: AuthCollaborators,
        sources: CredentialSourceChain,
        probe: EnvironmentProbe,
        metadata: MetadataClient,
        project_id: Optional[str] = None,
        credentials: Optional[Dict[str, Any]] = None,
        key_filename: Optional[str] = None,
        cached_credential: Optional[Callable[[], Optional[Credential]]] = None,
    ):
        self.collaborators = collaborators
        self.sources = sources
        self.probe = probe
        self.metadata = metadata
        self.explicit_project_id = project_id
        self.credentials = credentials
        self.key_filename = key_filename
        self.cached_credential = cached_credential or (lambda: None)
        self._project_id: Optional[str] = None
        self._lock = asyncio.Lock()

    @property
    def project_id(self) -> Optional[str]:
        return self._project_id

    async def a_resolve(self) -> str:
        if self._project_id is not None:
            return self._project_id
        async with self._lock:
            if self._project_id is None:
                project_id = await self._a_find()
                if project_id is None:
                    raise ProjectIdNotFound(PROJECT_ID_NOT_FOUND_MESSAGE)
                logger.info(f"resolved project id: {project_id}")
                self._project_id = project_id
        return self._project_id

    async def _a_find(self) -> Optional[str]:
        project_id = (
            self.explicit_project_id
            or self.collaborators.getenv(env_vars.PROJECT)
            or self.collaborators.getenv(env_vars.PROJECT_ALTERNATE)
        )
        if project_id:
            return project_id
        return (
            await self.a_from_credential_file()
            or await self.a_from_gcloud()
            or await self.a_from_metadata()
        )

    async def a_from_credential_file(self) -> Optional[str]:
        credential = self.cached_credential()
        if credential is not None and credential.project_id:
            return credential.project_id
        # a named file that is broken aborts resolution, as in the credential chain
        info = await self.sources.a_read_file_sources(self.credentials, self.key_filename)
        if isinstance(info, dict) and info.get("project_id"):
            return info["project_id"]
        return None

    async def a_from_gcloud(self) -> Optional[str]:
        try:
            result = await self.collaborators.command_runner(*GCLOUD_CONFIG_COMMAND)
        except OSError as e:
            logger.debug(f"gcloud is not available: {e}")
            return None
        if result.returncode != 0 or not result.stdout:
            return None
        try:
            return json.loads(result.stdout)["configuration"]["properties"]["core"]["project"]
        except (ValueError, KeyError, TypeError):
            logger.debug("gcloud configuration did not contain a project")
            return None

    async def a_from_metadata(self) -> Optional[str]:
        if not await self.probe.a_check_is_compute():
            return None
        try:
            return await self.metadata.a_project_id() or None
        except (RequestError, httpx.TransportError) as e:
            logger.debug(f"metadata server did not return a project id: {e}")
            return None
