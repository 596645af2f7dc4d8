"""
Adapter for the original camelCase config dictionaries.

Legacy shape::

    {"filename": "avatar", "path": "/srv/uploads", "makedir": True,
     "required": False, "validations": {"maxSize": 1048576, "mimeType": "image/png"},
     "rename": callable}

``fieldname`` is accepted as an alias of ``filename``. Send configs add
``provider`` and ``options`` (with camelCase S3 credentials).
"""

from typing import Any, Dict, List, Optional, Union

from .exceptions import ValidationFailedError
from .models import FileValidation, SaveConfig, SendConfig

LegacyConfig = Union[Dict[str, Any], List[Dict[str, Any]]]

_CREDENTIAL_KEYS = {
    "accessKeyId": "access_key_id",
    "secretAccessKey": "secret_access_key",
    "sessionToken": "session_token",
}


def _selector(config: Dict[str, Any]):
    selector = config.get("fieldname", config.get("filename"))
    if not selector:
        raise ValidationFailedError("Legacy config is missing 'filename'", details={"config": list(config)})
    return selector


def _validation(config: Dict[str, Any]) -> Optional[FileValidation]:
    rules = config.get("validations")
    if not rules:
        return None
    return FileValidation(
        max_size_bytes=rules.get("maxSize"),
        allowed_mime_types=rules.get("mimeType"),
    )


def _options(options: Dict[str, Any]) -> Dict[str, Any]:
    converted = dict(options)
    if isinstance(options.get("credentials"), dict):
        converted["credentials"] = {
            _CREDENTIAL_KEYS.get(key, key): value for key, value in options["credentials"].items()
        }
    if "endpoint" in options and "endpoint_url" not in options:
        converted["endpoint_url"] = options["endpoint"]
    return converted


def _save_config(config: Dict[str, Any]) -> SaveConfig:
    return SaveConfig(
        field_name=_selector(config),
        destination=config["path"],
        required=config.get("required", False),
        create_destination=config.get("makedir", False),
        validation=_validation(config),
        rename=config.get("rename"),
    )


def _send_config(config: Dict[str, Any]) -> SendConfig:
    return SendConfig(
        field_name=_selector(config),
        provider=config["provider"],
        options=_options(config.get("options", {})),
        required=config.get("required", False),
        validation=_validation(config),
        rename=config.get("rename"),
    )


def from_legacy_save(config: LegacyConfig) -> List[SaveConfig]:
    """Translate legacy save config(s) into canonical SaveConfig objects."""
    configs = config if isinstance(config, list) else [config]
    return [_save_config(c) for c in configs]


def from_legacy_send(config: LegacyConfig) -> List[SendConfig]:
    """Translate legacy send config(s) into canonical SendConfig objects."""
    configs = config if isinstance(config, list) else [config]
    return [_send_config(c) for c in configs]
