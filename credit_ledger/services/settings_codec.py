"""
Settings Codec - Decode and encode the per-account settings blob.

Decoding never fails the caller: a missing blob or malformed content is
logged and read as empty settings.
"""

from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError
from structlog import get_logger

from credit_ledger.models.account_settings import AccountSettings

logger = get_logger(__name__)


def decode_settings(blob: Any) -> AccountSettings:
    """
    Decode a settings blob as stored on the account row.

    Accepts None, a JSON string or a mapping.
    """
    if blob is None or blob == "":
        return AccountSettings()

    try:
        if isinstance(blob, (str, bytes)):
            return AccountSettings.model_validate_json(blob)
        if isinstance(blob, Mapping):
            return AccountSettings.model_validate(dict(blob))
    except ValidationError as exc:
        logger.warning("settings_decode_failed", error=str(exc), blob_type=type(blob).__name__)
        return AccountSettings()

    logger.warning("settings_decode_unsupported_type", blob_type=type(blob).__name__)
    return AccountSettings()


def encode_settings(settings: AccountSettings) -> dict[str, Any]:
    """Encode settings for storage. Keys owned by other subsystems pass through unchanged."""
    return settings.model_dump(by_alias=True, mode="json")
