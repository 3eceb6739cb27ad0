"""The ordered chain of credential sources (Application Default Credentials)."""

import json
import os
from typing import Any, Dict, List, Optional, TextIO, Union

from loguru import logger

from pinjected_google_auth import env_vars
from pinjected_google_auth.collaborators import AuthCollaborators
from pinjected_google_auth.credentials import (
    Credential,
    api_key_credential,
    compute_credential,
    credential_from_json,
    iam_credential,
)
from pinjected_google_auth.exceptions import (
    CredentialFileUnreadable,
    InvalidCredentialFormat,
    NoCredentialsFound,
)
from pinjected_google_auth.messages import PROBLEMATIC_CREDENTIALS, warn_once
from pinjected_google_auth.metadata import EnvironmentProbe

NO_CREDENTIALS_MESSAGE = (
    "Could not load the default credentials. Browse to "
    "https://cloud.google.com/docs/authentication/getting-started for more information."
)


class CredentialSourceChain:
    """
    Materializes a credential from the first source that has one.

    Sources, in order: explicit JSON, explicit key file, the file named by
    GOOGLE_APPLICATION_CREDENTIALS, the well-known gcloud file, and finally
    the compute metadata server. A source that is simply absent declines and
    the next one is tried; a source that is present but broken raises.
    """

    def __init__(
        self,
        collaborators: AuthCollaborators,
        probe: EnvironmentProbe,
        scopes: Union[str, List[str], None] = None,
        eager_refresh_threshold_millis: Optional[int] = None,
    ):
        self.collaborators = collaborators
        self.probe = probe
        self.scopes = scopes
        self.eager_refresh_threshold_millis = eager_refresh_threshold_millis

    def from_json(
        self,
        info: Any,
        eager_refresh_threshold_millis: Optional[int] = None,
        scopes: Union[str, List[str], None] = None,
    ) -> Credential:
        return credential_from_json(
            info,
            self.collaborators,
            eager_refresh_threshold_millis=self._threshold(eager_refresh_threshold_millis),
            scopes=scopes if scopes is not None else self.scopes,
        )

    def from_stream(
        self,
        stream: TextIO,
        eager_refresh_threshold_millis: Optional[int] = None,
        scopes: Union[str, List[str], None] = None,
    ) -> Credential:
        if stream is None:
            raise InvalidCredentialFormat("Must pass in a stream containing the credentials.")
        return self.from_json(
            self._parse(stream.read(), "<stream>"),
            eager_refresh_threshold_millis=eager_refresh_threshold_millis,
            scopes=scopes,
        )

    def from_api_key(
        self, api_key: str, eager_refresh_threshold_millis: Optional[int] = None
    ) -> Credential:
        return api_key_credential(
            api_key,
            self.collaborators,
            eager_refresh_threshold_millis=self._threshold(eager_refresh_threshold_millis),
        )

    def from_iam(self, selector: str, token: str) -> Credential:
        return iam_credential(selector, token, self.collaborators)

    async def a_resolve(
        self,
        credentials: Optional[Dict[str, Any]] = None,
        key_filename: Optional[str] = None,
        scopes: Union[str, List[str], None] = None,
    ) -> Credential:
        scopes = scopes if scopes is not None else self.scopes
        with logger.contextualize(tag="adc"):
            if credentials is not None:
                logger.debug("using explicitly supplied credentials")
                return self.from_json(credentials, scopes=scopes)
            if key_filename is not None:
                logger.debug(f"using explicit key file {key_filename}")
                return await self.a_from_file(key_filename, scopes=scopes)

            credential = await self.a_try_environment_variable(scopes=scopes)
            if credential is not None:
                return credential
            credential = await self.a_try_well_known_file(scopes=scopes)
            if credential is not None:
                return credential

            if await self.probe.a_check_is_compute():
                logger.info("using compute metadata credentials")
                return compute_credential(
                    self.collaborators,
                    scopes=scopes,
                    eager_refresh_threshold_millis=self.eager_refresh_threshold_millis,
                )
            raise NoCredentialsFound(NO_CREDENTIALS_MESSAGE)

    async def a_read_json(self, path: str) -> Dict[str, Any]:
        """
        Read and parse a credential file.

        Raises:
            CredentialFileUnreadable: empty path, missing file, directory, or broken symlink
            InvalidCredentialFormat: the file is not JSON
        """
        if not isinstance(path, str) or not path:
            raise CredentialFileUnreadable("The file path is invalid.", path=path)
        try:
            text = await self.collaborators.file_reader.a_read_text(path)
        except OSError as e:
            raise CredentialFileUnreadable(
                f"Unable to read the credential file specified by {path}: {e}", path=path
            ) from e
        return self._parse(text, path)

    async def a_from_file(
        self, path: str, scopes: Union[str, List[str], None] = None
    ) -> Credential:
        return self.from_json(await self.a_read_json(path), scopes=scopes)

    async def a_try_environment_variable(
        self, scopes: Union[str, List[str], None] = None
    ) -> Optional[Credential]:
        path = self.collaborators.getenv(env_vars.CREDENTIALS)
        if path is None:
            return None
        logger.debug(f"using credential file from {env_vars.CREDENTIALS}: {path}")
        try:
            return await self.a_from_file(path, scopes=scopes)
        except CredentialFileUnreadable as e:
            raise CredentialFileUnreadable(
                f"Unable to read the credential file specified by the "
                f"{env_vars.CREDENTIALS} environment variable: {e}",
                path=path,
            ) from e

    def well_known_file_path(self) -> Optional[str]:
        if self.collaborators.is_windows:
            root = self.collaborators.getenv(env_vars.APPDATA)
            if root is None:
                return None
            return os.path.join(root, env_vars.CLOUD_SDK_CONFIG_DIR, env_vars.WELL_KNOWN_FILE)
        home = self.collaborators.getenv(env_vars.HOME)
        if home is None:
            return None
        return os.path.join(home, ".config", env_vars.CLOUD_SDK_CONFIG_DIR, env_vars.WELL_KNOWN_FILE)

    async def a_try_well_known_file(
        self, scopes: Union[str, List[str], None] = None
    ) -> Optional[Credential]:
        path = self.well_known_file_path()
        if path is None or not self.collaborators.file_reader.exists(path):
            return None
        logger.debug(f"using well-known credential file {path}")
        credential = await self.a_from_file(path, scopes=scopes)
        if env_vars.CLOUD_SDK_CLIENT_ID in (credential.client_id, credential.email):
            warn_once(PROBLEMATIC_CREDENTIALS)
        return credential

    async def a_read_file_sources(
        self,
        credentials: Optional[Dict[str, Any]] = None,
        key_filename: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """The raw JSON of the first file-based source present, without probing."""
        if credentials is not None:
            return credentials
        if key_filename is not None:
            return await self.a_read_json(key_filename)
        path = self.collaborators.getenv(env_vars.CREDENTIALS)
        if path is not None:
            return await self.a_read_json(path)
        path = self.well_known_file_path()
        if path is not None and self.collaborators.file_reader.exists(path):
            return await self.a_read_json(path)
        return None

    def _threshold(self, override: Optional[int]) -> Optional[int]:
        return override if override is not None else self.eager_refresh_threshold_millis

    @staticmethod
    def _parse(text: str, origin: str) -> Any:
        try:
            return json.loads(text)
        except ValueError as e:
            raise InvalidCredentialFormat(f"{origin} does not contain valid JSON: {e}") from e
