"""Enrolled respondent roster."""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

from .utils.image import ImageSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GalleryEntry:
    """One enrolled identity and its anchor signature."""

    display_name: str
    image_ref: ImageSource


def _resolve_ref(image_ref: str, anchor_dir: Optional[Path]) -> str:
    if anchor_dir is None or image_ref.startswith(('data:', 'http://', 'https://')):
        return image_ref
    path = Path(image_ref)
    if path.is_absolute():
        return image_ref
    return str(anchor_dir / path)


def load_gallery(
    roster_path: Union[str, Path],
    anchor_dir: Optional[Union[str, Path]] = None,
) -> List[GalleryEntry]:
    """Load a roster JSON file.

    The file holds a list whose items are either ``[display_name, image]``
    pairs or ``{"name": ..., "image": ...}`` objects. Relative image paths are
    resolved against ``anchor_dir``.

    Raises:
        FileNotFoundError: If the roster file does not exist.
        ValueError: If the roster is malformed.
    """
    roster_path = Path(roster_path)
    with roster_path.open('r', encoding='utf-8') as handle:
        payload = json.load(handle)

    if not isinstance(payload, list):
        raise ValueError(f"Roster {roster_path} must contain a list of entries")

    base_dir = Path(anchor_dir) if anchor_dir is not None else None
    entries: List[GalleryEntry] = []
    for index, item in enumerate(payload):
        if isinstance(item, dict):
            name, image_ref = item.get('name'), item.get('image')
        elif isinstance(item, (list, tuple)) and len(item) == 2:
            name, image_ref = item
        else:
            raise ValueError(f"Malformed roster entry #{index}: {item!r}")

        if not name or not image_ref:
            raise ValueError(f"Roster entry #{index} needs a name and an image")

        entries.append(GalleryEntry(display_name=str(name), image_ref=_resolve_ref(str(image_ref), base_dir)))

    logger.info(f"Loaded {len(entries)} gallery entries from {roster_path}")
    return entries
