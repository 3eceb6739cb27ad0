"""Environment variables and well-known endpoints consulted during resolution."""

CREDENTIALS = "GOOGLE_APPLICATION_CREDENTIALS"
"""Path of a credential file, consulted before the well-known file."""

PROJECT = "GCLOUD_PROJECT"
"""Primary variable naming the active project."""

PROJECT_ALTERNATE = "GOOGLE_CLOUD_PROJECT"
"""Alternate name for the active project variable."""

APPDATA = "APPDATA"
HOME = "HOME"

GCE_METADATA_HOST = "GCE_METADATA_HOST"
"""Overrides the metadata server host (``host`` or ``host:port``)."""

GAE_SERVICE = "GAE_SERVICE"
FUNCTION_NAME = "FUNCTION_NAME"

CLOUD_SDK_CONFIG_DIR = "gcloud"
WELL_KNOWN_FILE = "application_default_credentials.json"

CLOUD_SDK_CLIENT_ID = (
    "764086051850-6qr4p6gpi6hn506pt8ejuq83di341hur.apps.googleusercontent.com"
)

DEFAULT_METADATA_HOST = "metadata.google.internal"
METADATA_BASE_PATH = "/computeMetadata/v1"
METADATA_HEADERS = {"Metadata-Flavor": "Google"}

DEFAULT_TOKEN_URI = "https://oauth2.googleapis.com/token"
IAM_HOST = "iam.googleapis.com"

CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"
