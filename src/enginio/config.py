"""Default configuration values for the Enginio client."""

from __future__ import annotations

import os
from typing import Final

# The production backend.  Every client talks to this endpoint unless the
# caller or the ``ENGINIO_API_URL`` environment variable points elsewhere.
DEFAULT_API_URL: Final[str] = "https://api.engin.io"

# The staging backend serves certificates that do not validate.  Selecting it
# is the only thing that turns on the SSL error suppression policy.
STAGING_API_URL: Final[str] = "https://api.staging.engin.io"
NON_PRODUCTION_API_URLS: Final[frozenset[str]] = frozenset({STAGING_API_URL})

API_URL_ENV_VAR: Final[str] = "ENGINIO_API_URL"
API_VERSION_PATH: Final[str] = "/v1"

# ---------------------------------------------------------------------------
# Request headers
# ---------------------------------------------------------------------------

BACKEND_ID_HEADER: Final[str] = "Enginio-Backend-Id"
BACKEND_SECRET_HEADER: Final[str] = "Enginio-Backend-Secret"
SESSION_TOKEN_HEADER: Final[str] = "Enginio-Backend-Session"
CONTENT_TYPE_HEADER: Final[str] = "Content-Type"
JSON_CONTENT_TYPE: Final[str] = "application/json"

# ---------------------------------------------------------------------------
# Payload conventions
# ---------------------------------------------------------------------------

OBJECT_TYPE_KEY: Final[str] = "objectType"
OBJECT_ID_KEY: Final[str] = "id"
USER_OBJECTS_PREFIX: Final[str] = "objects."
RESULTS_KEY: Final[str] = "results"
COUNT_KEY: Final[str] = "count"
SESSION_TOKEN_KEY: Final[str] = "sessionToken"

# Number of rows the list model asks for when the bound query does not carry
# its own ``limit``.
DEFAULT_PAGE_SIZE: Final[int] = 100


def default_api_url() -> str:
    """Return the backend URL, honouring the ``ENGINIO_API_URL`` override."""

    override = os.environ.get(API_URL_ENV_VAR, "").strip()
    return override or DEFAULT_API_URL
