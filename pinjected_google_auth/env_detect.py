from enum import Enum

from pinjected_google_auth import env_vars
from pinjected_google_auth.collaborators import AuthCollaborators
from pinjected_google_auth.metadata import EnvironmentProbe, MetadataClient


class GCPEnv(Enum):
    APP_ENGINE = "APP_ENGINE"
    KUBERNETES_ENGINE = "KUBERNETES_ENGINE"
    CLOUD_FUNCTIONS = "CLOUD_FUNCTIONS"
    COMPUTE_ENGINE = "COMPUTE_ENGINE"
    NONE = "NONE"


async def a_detect_env(
    collaborators: AuthCollaborators,
    probe: EnvironmentProbe,
    metadata: MetadataClient,
) -> GCPEnv:
    if collaborators.getenv(env_vars.GAE_SERVICE):
        return GCPEnv.APP_ENGINE
    if collaborators.getenv(env_vars.FUNCTION_NAME):
        return GCPEnv.CLOUD_FUNCTIONS
    if await probe.a_check_is_compute():
        if await metadata.a_is_cluster():
            return GCPEnv.KUBERNETES_ENGINE
        return GCPEnv.COMPUTE_ENGINE
    return GCPEnv.NONE
