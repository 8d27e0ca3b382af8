"""
Naming helpers for the Image Ingest function.
Derives the converted JPEG name and the local scratch paths from an object key.
"""

import os
import posixpath
import tempfile
from dataclasses import dataclass
from typing import Optional

# File extension for the created JPEG files.
JPEG_EXTENSION = ".jpg"
CONVERTED_SUFFIX = "_converted"

IMAGE_CONTENT_PREFIX = "image/"
JPEG_CONTENT_TYPE = "image/jpeg"


@dataclass(frozen=True)
class DerivedNaming:
    """Names and paths computed once per invocation from the object key."""

    object_key: str
    base_name: str
    directory: str
    jpeg_file_name: str
    temp_local_file: str
    temp_local_dir: str
    temp_local_jpeg_file: str
    temp_root: str = ""

    def check_scratch_path(self) -> None:
        """Raise ValueError if the scratch file would land outside the scratch root."""
        if not is_within(self.temp_root, self.temp_local_file):
            raise ValueError(
                f"Object key {self.object_key!r} resolves outside scratch root {self.temp_root}"
            )


def _extension(name: str) -> str:
    # Last dot wins, but a dot in first position (".hidden") or ".." is no extension.
    # "..png" has extension ".png".
    dot = name.rfind(".")
    if dot <= 0 or name == "..":
        return ""
    return name[dot:]


def _split_base_name(object_key: str) -> str:
    name = posixpath.basename(object_key)
    ext = _extension(name)
    return name[: -len(ext)] if ext else name


def _scratch_path(temp_root: str, relative_path: str) -> str:
    return os.path.normpath(os.path.join(temp_root, relative_path.lstrip("/")))


def is_within(root: str, path: str) -> bool:
    """Return True if `path` is `root` or lies below it."""
    root = os.path.abspath(root)
    return os.path.commonpath([root, os.path.abspath(path)]) == root


def derive_naming(object_key: str, temp_root: Optional[str] = None) -> DerivedNaming:
    """Derive target naming and scratch paths for a storage object.

    Args:
        object_key: Full object name inside the bucket, e.g. "photos/dog.png"
        temp_root: Scratch root directory (defaults to the system temp dir)

    Returns:
        DerivedNaming for the object
    """
    temp_root = temp_root or tempfile.gettempdir()

    base_name = _split_base_name(object_key)
    directory = posixpath.dirname(object_key) or "."
    jpeg_file_name = posixpath.normpath(
        posixpath.join(directory, f"{base_name}{CONVERTED_SUFFIX}{JPEG_EXTENSION}")
    )

    temp_local_file = _scratch_path(temp_root, object_key)

    return DerivedNaming(
        object_key=object_key,
        base_name=base_name,
        directory=directory,
        jpeg_file_name=jpeg_file_name,
        temp_local_file=temp_local_file,
        temp_local_dir=os.path.dirname(temp_local_file),
        temp_local_jpeg_file=_scratch_path(temp_root, jpeg_file_name),
        temp_root=temp_root,
    )


def is_image(content_type: Optional[str]) -> bool:
    """Return True if the declared content type is an image media type."""
    return bool(content_type) and content_type.startswith(IMAGE_CONTENT_PREFIX)


def is_canonical_jpeg(content_type: Optional[str]) -> bool:
    """Return True if the declared content type is already JPEG."""
    return bool(content_type) and content_type.startswith(JPEG_CONTENT_TYPE)
