"""
Upstream bearer token access.
"""

from pathlib import Path
from typing import Union

from shared.errors import UpstreamCredentialError
from shared.logging import get_logger

logger = get_logger("unit_query.token_file")


def read_bearer_token(path: Union[str, Path]) -> str:
    """Read the Salesforce bearer token; re-read on every call."""
    token_path = Path(path)
    try:
        token = token_path.read_text(encoding="utf-8").strip()
    except OSError as exc:
        logger.error("Bearer token file unreadable", path=str(token_path), error=str(exc))
        token = ""

    if not token:
        raise UpstreamCredentialError(
            "Provide a readable SF_BEARER_TOKEN_FILE with the bearer token "
            "(default: ./.secrets/sf_bearer_token).",
        )
    return token
