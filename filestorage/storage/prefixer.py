"""
Logical-to-physical path mapping.

Storage paths are always "/" separated, regardless of the host OS. The
prefixer roots every logical path under a configured prefix on the way in,
and removes it again on the way out.
"""

import posixpath

SEPARATOR = "/"


def normalize_path(path: str) -> str:
    """
    Normalize a logical path.

    Collapses repeated separators and "." / ".." segments and drops leading
    and trailing separators. ".." never climbs above the root: leading
    parent segments are dropped. The empty string denotes the root.
    """
    if not path:
        return ""

    # Rooted, so normpath drops ".." at the top
    segments = posixpath.normpath(SEPARATOR + path).split(SEPARATOR)
    return SEPARATOR.join(segment for segment in segments if segment)


class PathPrefixer:
    """Maps logical paths into a namespace rooted at ``prefix``."""

    def __init__(self, prefix: str = ""):
        self.prefix = normalize_path(prefix)
        self._root = f"{self.prefix}{SEPARATOR}" if self.prefix else ""

    def _join(self, path: str) -> str:
        # Normalized before joining so ".." stays inside the prefix
        relative = normalize_path(path)
        return f"{self._root}{relative}" if relative else self.prefix

    def prefix_file_path(self, path: str) -> str:
        """Physical file path; never ends with a separator."""
        return self._join(path)

    def prefix_directory_path(self, path: str) -> str:
        """
        Physical directory path; always ends with a separator.

        The unprefixed root maps to "" so that prefix listings match every key.
        """
        joined = self._join(path)
        return f"{joined}{SEPARATOR}" if joined else ""

    def strip_file_path(self, path: str) -> str:
        if self._root and path.startswith(self._root):
            path = path[len(self._root):]
        elif path == self.prefix:
            path = ""
        return path.lstrip(SEPARATOR)

    def strip_directory_path(self, path: str) -> str:
        return self.strip_file_path(path).rstrip(SEPARATOR)
