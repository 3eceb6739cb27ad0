"""User-facing advisories, each emitted at most once per process."""

import warnings
from dataclasses import dataclass
from threading import Lock
from typing import Set, Type

from loguru import logger


class ProblematicCredentialsWarning(UserWarning):
    pass


class DefaultProjectIdDeprecationWarning(DeprecationWarning):
    pass


@dataclass(frozen=True)
class Advisory:
    code: str
    message: str
    category: Type[Warning]


PROBLEMATIC_CREDENTIALS = Advisory(
    code="PROBLEMATIC_CREDENTIALS",
    message=(
        "Your application has authenticated using end user credentials from Google "
        "Cloud SDK. We recommend that most server applications use service accounts "
        "instead. If your application continues to use end user credentials from Cloud "
        'SDK, you might receive a "quota exceeded" or "API not enabled" error. For '
        "more information about service accounts, see "
        "https://cloud.google.com/docs/authentication/."
    ),
    category=ProblematicCredentialsWarning,
)

DEFAULT_PROJECT_ID_DEPRECATED = Advisory(
    code="DEFAULT_PROJECT_ID_DEPRECATED",
    message=(
        "The 'a_get_default_project_id' method has been deprecated and will be "
        "removed in a future release. Please use 'a_get_project_id' instead."
    ),
    category=DefaultProjectIdDeprecationWarning,
)


class AdvisoryRegistry:
    """
    Remembers which advisories were already emitted.

    One registry (``ADVISORIES``) lives from interpreter start to interpreter
    exit and is shared by every resolver. Access is serialized with a lock so
    threads running separate event loops still emit each advisory once.
    """

    def __init__(self):
        self._lock = Lock()
        self.emitted: Set[str] = set()

    def warn_once(self, advisory: Advisory, stacklevel: int = 3) -> bool:
        with self._lock:
            if advisory.code in self.emitted:
                return False
            self.emitted.add(advisory.code)
        logger.warning(advisory.message)
        warnings.warn(advisory.message, advisory.category, stacklevel=stacklevel)
        return True


ADVISORIES = AdvisoryRegistry()


def warn_once(advisory: Advisory) -> bool:
    return ADVISORIES.warn_once(advisory, stacklevel=4)
