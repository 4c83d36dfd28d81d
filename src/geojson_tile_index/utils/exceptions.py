"""
Exception hierarchy for source loading, index construction and tile retrieval.

Input problems, configuration problems and failures inside the delegated
libraries are kept apart so callers can tell a bad request from a broken
dependency. Tile lookups never raise for missing data; absence is returned
as ``None``.
"""

from typing import Optional


class TileIndexError(Exception):
    """Base class for every error raised by this package."""


class InputError(TileIndexError):
    """The request or the GeoJSON payload it carries is unusable."""


class ConfigError(TileIndexError):
    """An option or aggregate definition is invalid."""


class CollaboratorError(TileIndexError):
    """
    A delegated library (HTTP fetch, tiling, clustering) failed.

    The original exception is kept on ``original`` and as ``__cause__``.
    """

    def __init__(self, message: str, original: Optional[BaseException] = None):
        super().__init__(message)
        self.original = original


class FetchError(CollaboratorError):
    """Remote GeoJSON could not be fetched or decoded."""


class IndexBuildError(CollaboratorError):
    """The tiling or clustering library could not build an index."""


class ClusterNotFoundError(TileIndexError, KeyError):
    """No cluster with the requested id exists in the cluster tree."""

    def __init__(self, cluster_id: int):
        super().__init__(f"No cluster with the specified id: {cluster_id}")
        self.cluster_id = cluster_id

    def __str__(self) -> str:
        return self.args[0]
