"""Map detector-reported file paths onto the catalog's (file, relative_path) key."""

from __future__ import annotations

CatalogKey = tuple[str, str]


def split_catalog_path(path: str, separator: str = "/") -> CatalogKey:
    """Split a catalog-relative path into ``(file_name, relative_path)``.

    Forward and back slashes both count as separators; the directory part is
    re-joined with ``separator``, which is how the catalog stores it. A bare
    file name has an empty relative path.
    """

    unified = path.replace("\\", "/")
    directory, _, file_name = unified.rpartition("/")
    if separator != "/":
        directory = directory.replace("/", separator)
    return file_name, directory


def normalize_detector_path(
    raw_path: str,
    truncation_prefix: str,
    separator: str = "/",
) -> CatalogKey | None:
    """Return the catalog key for a detector path, or ``None`` when it is out of scope.

    With an empty ``truncation_prefix`` the path is used as reported. Otherwise
    paths that do not start with the prefix belong to a different image set and
    are skipped; matching paths have the prefix stripped before splitting.
    """

    if truncation_prefix is None:
        raise ValueError("truncation_prefix must be a string (use '' for no truncation)")

    if not truncation_prefix:
        return split_catalog_path(raw_path, separator)

    if not raw_path.startswith(truncation_prefix):
        return None

    return split_catalog_path(raw_path[len(truncation_prefix):], separator)


__all__ = ["CatalogKey", "split_catalog_path", "normalize_detector_path"]
