"""
Persistence Engine

``save`` moves cached files into local directories; ``send`` uploads them to
a remote provider. Both are all-or-nothing per call: configs run in order,
files within a config run in arrival order, and any failure unwinds every
file this call already persisted before the error is re-raised.
"""

import asyncio
import errno
import logging
import os
import shutil
from pathlib import Path, PurePosixPath
from typing import Any, List, Optional, Sequence, Tuple, Type, TypeVar, Union

from .context import UxioContext
from .exceptions import ConflictError, InternalError, NotFoundError, UxioError, ValidationFailedError
from .metadata import extract_metadata
from .models import CachedFile, FileValidation, PersistedFileInfo, SaveConfig, SendConfig
from .providers import StorageProvider, get_provider

logger = logging.getLogger(__name__)

ConfigT = TypeVar("ConfigT", SaveConfig, SendConfig)


def _as_configs(configs: Any, model: Type[ConfigT]) -> List[ConfigT]:
    if not isinstance(configs, (list, tuple)):
        configs = [configs]
    return [c if isinstance(c, model) else model.model_validate(c) for c in configs]


def _match(config: Union[SaveConfig, SendConfig], context: UxioContext) -> List[CachedFile]:
    """Resolve matching files; raises NotFoundError if required and none match."""
    matched = context.select(config.field_names)
    if not matched and config.required:
        raise NotFoundError(
            f"Required files not found for fields: {', '.join(config.field_names)}.",
            details={"fields": config.field_names},
        )
    return matched


def validate_file(file: CachedFile, validation: Optional[FileValidation]) -> None:
    """
    Apply size and MIME type policy.

    Raises:
        ValidationFailedError: On the first violated rule
    """
    if validation is None:
        return

    if validation.max_size_bytes is not None and file.size_bytes > validation.max_size_bytes:
        raise ValidationFailedError(
            f"File size for '{file.original_name}' exceeds limit of "
            f"{validation.max_size_bytes} bytes.",
            details={"size_bytes": file.size_bytes, "max_size_bytes": validation.max_size_bytes},
        )

    allowed = validation.allowed_mime_types
    if allowed and file.mime_type not in allowed:
        raise ValidationFailedError(
            f"Invalid mime type for '{file.original_name}'. "
            f"Only {', '.join(allowed)} are allowed.",
            details={"mime_type": file.mime_type, "allowed_mime_types": allowed},
        )


def final_name(config: Union[SaveConfig, SendConfig], file: CachedFile, allow_subpath: bool = False) -> str:
    """
    Compute the destination name via ``rename`` or the original filename.

    Local saves must produce a plain filename; remote keys may contain ``/``.
    """
    name = config.rename(file) if config.rename else file.original_name
    if not isinstance(name, str) or not name.strip():
        raise ValidationFailedError(
            f"Invalid destination name for '{file.original_name}'",
            details={"name": name},
        )

    parts = PurePosixPath(name.replace("\\", "/")).parts
    if not parts:
        raise ValidationFailedError(f"Destination name '{name}' has no path components")
    if name.startswith(("/", "\\")) or ".." in parts:
        raise ValidationFailedError(f"Destination name '{name}' escapes its destination")
    if not allow_subpath and len(parts) != 1:
        raise ValidationFailedError(f"Destination name '{name}' must not contain path separators")
    return name


async def _ensure_directory(config: SaveConfig) -> None:
    destination = Path(config.destination)
    try:
        await asyncio.to_thread(os.stat, destination)
    except FileNotFoundError:
        if not config.create_destination:
            raise NotFoundError(
                f"Destination directory not found: {destination}",
                details={"destination": str(destination)},
            )
        await asyncio.to_thread(destination.mkdir, parents=True, exist_ok=True)
        logger.info(f"Created destination directory: {destination}")
        return

    if not destination.is_dir():
        raise NotADirectoryError(errno.ENOTDIR, "Destination is not a directory", str(destination))


def _move(source: Path, target: Path) -> None:
    try:
        os.rename(source, target)
    except OSError as e:
        if e.errno != errno.EXDEV:
            raise
        shutil.move(str(source), str(target))


async def _unlink(path: Path) -> None:
    try:
        await asyncio.to_thread(os.unlink, path)
    except OSError as e:
        logger.error(f"Failed to delete saved file during rollback: {path}: {e}")


async def _rollback_remote(provider: StorageProvider, ref: Any) -> None:
    try:
        await provider.rollback(ref)
    except Exception as e:
        logger.error(f"Failed to roll back upload on provider '{provider.provider_name}': {e}")


def _as_uxio_error(exc: Exception) -> UxioError:
    if isinstance(exc, UxioError):
        return exc
    return InternalError.wrap(exc)


def _file_info(file: CachedFile, name: str, path: str, metadata: dict, **kwargs) -> PersistedFileInfo:
    return PersistedFileInfo(
        field_name=file.field_name,
        original_name=file.original_name,
        name=name,
        path=path,
        size_bytes=file.size_bytes,
        mime_type=file.mime_type,
        encoding=file.encoding,
        metadata=metadata,
        **kwargs,
    )


async def save(
    configs: Union[SaveConfig, dict, Sequence[Union[SaveConfig, dict]]],
    context: UxioContext,
) -> List[PersistedFileInfo]:
    """
    Move selected cached files into local directories.

    Args:
        configs: One SaveConfig or an ordered batch
        context: Registry produced by the upload middleware

    Returns:
        list[PersistedFileInfo]: In config order, then arrival order

    Raises:
        NotFoundError: Required field missing, or destination missing without create_destination
        ValidationFailedError: Size or MIME type policy violated
        ConflictError: A file already exists at the destination name
        InternalError: Any other failure
    """
    saved: List[PersistedFileInfo] = []
    rollback_paths: List[Path] = []

    try:
        for config in _as_configs(configs, SaveConfig):
            files_to_save = _match(config, context)
            if not files_to_save:
                continue

            await _ensure_directory(config)

            for file in files_to_save:
                validate_file(file, config.validation)
                metadata = await extract_metadata(file.cache_path, file.mime_type)

                name = final_name(config, file)
                target = Path(config.destination) / name

                if await asyncio.to_thread(os.path.lexists, target):
                    raise ConflictError(name, str(config.destination))

                await asyncio.to_thread(_move, file.cache_path, target)
                rollback_paths.append(target)

                saved.append(_file_info(file, name, str(target), metadata))
                logger.info(f"Saved '{file.original_name}' ({file.field_name}) to {target}")

    except BaseException as e:
        logger.error(f"File save operation failed, rolling back {len(rollback_paths)} file(s): {e}")
        await asyncio.gather(*(_unlink(path) for path in rollback_paths), return_exceptions=True)
        logger.info("Rollback completed")
        if not isinstance(e, Exception):
            raise
        error = _as_uxio_error(e)
        if error is e:
            raise
        raise error from e

    return saved


async def send(
    configs: Union[SendConfig, dict, Sequence[Union[SendConfig, dict]]],
    context: UxioContext,
) -> List[PersistedFileInfo]:
    """
    Upload selected cached files to remote providers.

    Same selection, validation and rename rules as ``save``. On failure every
    upload from this call whose provider supports rollback is undone.

    Raises:
        UnsupportedProviderError: Unknown provider identifier
        ProviderConfigInvalidError: Provider options incomplete
        ProviderUploadError: Remote rejected an upload
        plus the errors raised by ``save``
    """
    sent: List[PersistedFileInfo] = []
    rollback_refs: List[Tuple[StorageProvider, Any]] = []
    irreversible: List[str] = []

    try:
        for config in _as_configs(configs, SendConfig):
            provider = get_provider(config.provider)
            provider.validate_options(config.options)

            files_to_send = _match(config, context)
            if not files_to_send:
                continue

            for file in files_to_send:
                validate_file(file, config.validation)
                metadata = await extract_metadata(file.cache_path, file.mime_type)

                name = final_name(config, file, allow_subpath=True)
                result = await provider.upload(file, name, config.options)

                if provider.supports_rollback:
                    rollback_refs.append((provider, result.rollback_ref))
                else:
                    irreversible.append(result.path)

                sent.append(
                    _file_info(
                        file,
                        name,
                        result.path,
                        metadata,
                        provider=provider.provider_name,
                        extra=result.extra,
                    )
                )

    except BaseException as e:
        logger.error(f"File send operation failed, rolling back {len(rollback_refs)} upload(s): {e}")
        await asyncio.gather(
            *(_rollback_remote(p, ref) for p, ref in rollback_refs), return_exceptions=True
        )
        if irreversible:
            logger.warning(
                f"{len(irreversible)} upload(s) cannot be rolled back: {', '.join(irreversible)}"
            )
        logger.info("Rollback completed")
        if not isinstance(e, Exception):
            raise
        error = _as_uxio_error(e)
        if error is e:
            raise
        raise error from e

    return sent
