"""Copy an entity's primary media (featured image) to the target store."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING
from urllib.parse import unquote, urlparse

from ..errors import DownloadError, MediaRegistrationError

if TYPE_CHECKING:
    from .store import StoreAccessor

logger = logging.getLogger(__name__)


def filename_from_url(url: str) -> str:
    """Return the last path segment of *url*, e.g. ``portrait.jpg``."""
    name = PurePosixPath(unquote(urlparse(url).path)).name
    return name or "media"


@contextmanager
def staged_download(target: StoreAccessor, url: str) -> Iterator[Path]:
    """Download *url* into a transient local file for the ``with`` block.

    The file is removed on every exit path unless the store already
    took ownership of it (and removed it) during registration.

    Raises:
        DownloadError: If the download fails.
    """
    local_path = target.download_to_local(url)
    try:
        yield local_path
    finally:
        local_path.unlink(missing_ok=True)


class MediaTransfer:
    """Resolve a source entity's primary media onto the target store.

    Assets are identified by origin URL. A URL already seen in this
    batch, or already present in the target media library, is attached
    without downloading it again.

    Args:
        target: Store the media is copied into.
    """

    def __init__(self, target: StoreAccessor) -> None:
        self.target = target
        self._by_origin: dict[str, str] = {}

    def transfer(
        self, source: StoreAccessor, source_id: str, new_id: str
    ) -> list[str]:
        """Copy the primary media of *source_id* to *new_id*.

        Returns:
            Warning messages; empty when there was nothing to do or the
            transfer succeeded.

        Raises:
            StoreError: If linking the asset to the entity fails.
        """
        url = source.get_primary_media_url(source_id)
        if not url:
            return []

        media_id = self._by_origin.get(url)
        if media_id is None:
            media_id = self.target.find_media_by_origin_url(url)

        if media_id is None:
            try:
                with staged_download(self.target, url) as local_path:
                    media_id = self.target.register_media(
                        local_path, filename_from_url(url), new_id
                    )
            except DownloadError as exc:
                message = f"Failed to download image: {exc}"
                logger.warning(message)
                return [message]
            except MediaRegistrationError as exc:
                message = f"Failed to sideload image: {exc}"
                logger.warning(message)
                return [message]

        self._by_origin[url] = media_id
        self.target.set_primary_media(new_id, media_id)
        return []
