# radar_label/media_import.py
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Iterable, List

from PyQt5.QtGui import QImageReader

from .domain import ImageLoadError, natural_sort_key

logger = logging.getLogger(__name__)


# Allowed local extensions (strict)
ALLOWED_IMAGE_EXTS = {".png", ".jpg", ".jpeg", ".webp", ".bmp"}

IMAGE_FILE_FILTER = "Images (*.png *.jpg *.jpeg *.webp *.bmp)"


@dataclass(frozen=True)
class LoadedImage:
    name: str
    url: str
    width: int
    height: int


def ext_lower(path: str) -> str:
    _, ext = os.path.splitext(path.strip())
    return ext.lower()


def is_image_path(path: str) -> bool:
    return ext_lower(path) in ALLOWED_IMAGE_EXTS


def load_image(path: str) -> LoadedImage:
    """
    Decodes the file once to validate it and read its size.
    Raises ImageLoadError if it cannot be decoded.
    """
    if not os.path.isfile(path):
        raise ImageLoadError(f"File does not exist: {path}")
    reader = QImageReader(path)
    image = reader.read()
    if image.isNull():
        raise ImageLoadError(f"Failed to load {os.path.basename(path)}: {reader.errorString()}")
    return LoadedImage(
        name=os.path.basename(path),
        url=os.path.abspath(path),
        width=image.width(),
        height=image.height(),
    )


def load_images(paths: Iterable[str]) -> List[LoadedImage]:
    """
    Loads every supported image, skipping ones that fail to decode.
    Result is natural-sorted by file name; empty means nothing usable.
    """
    out: List[LoadedImage] = []
    for p in paths:
        if not is_image_path(p):
            continue
        try:
            out.append(load_image(p))
        except ImageLoadError as e:
            logger.warning("%s", e)
    out.sort(key=lambda img: natural_sort_key(img.name))
    return out


def load_folder(folder: str) -> List[LoadedImage]:
    if not folder or not os.path.isdir(folder):
        return []
    paths = [
        os.path.join(folder, fn)
        for fn in os.listdir(folder)
        if not fn.startswith(".") and os.path.isfile(os.path.join(folder, fn))
    ]
    return load_images(paths)
