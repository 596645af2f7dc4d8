"""
Request-scoped file registry.

One UxioContext exists per multipart request. The ingestion stage appends to
``files`` while the body streams in; afterwards the context is read-only and
is passed explicitly to ``save``/``send``.
"""

import logging
from typing import Dict, Iterable, List, Union

from .cache import CacheDirectory
from .models import CachedFile

logger = logging.getLogger(__name__)


class UxioContext:
    """Manifest of cached files plus form fields for one request."""

    def __init__(self, cache: CacheDirectory):
        self.cache = cache
        self.files: List[CachedFile] = []
        self.fields: Dict[str, str] = {}
        self.body_complete = False

    @property
    def cache_dir(self):
        return self.cache.path

    @property
    def has_file(self) -> bool:
        """True if any file part was uploaded."""
        return len(self.files) > 0

    def has_files(self, field_names: Union[str, Iterable[str]]) -> bool:
        """True if at least one file was uploaded under any of ``field_names``."""
        if isinstance(field_names, str):
            field_names = [field_names]
        wanted = set(field_names)
        return any(f.field_name in wanted for f in self.files)

    def select(self, field_names: Iterable[str]) -> List[CachedFile]:
        """
        Return complete files for the given field names, in arrival order.

        Truncated parts (client disconnected mid-upload) are skipped.
        """
        wanted = set(field_names)
        selected = []
        for cached in self.files:
            if cached.field_name not in wanted:
                continue
            if not cached.complete:
                logger.warning(
                    f"Skipping truncated upload '{cached.original_name}' "
                    f"for field '{cached.field_name}' ({cached.size_bytes} bytes received)"
                )
                continue
            selected.append(cached)
        return selected

    def add_file(self, cached: CachedFile) -> CachedFile:
        self.files.append(cached)
        return cached

    def set_field(self, name: str, value: str) -> None:
        self.fields[name] = value

    def cleanup(self) -> None:
        """Delete the cache directory. Idempotent."""
        self.cache.teardown()
