"""
Request parameters for loading a GeoJSON source.

Parameters arrive from HTTP bodies, manifests or direct calls, usually with
the camelCase names used by map clients (``maxZoom``,
``superclusterOptions``). ``SourceParams.from_dict`` accepts both spellings.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Union

from .utils.exceptions import InputError


FIELD_ALIASES = {
    "maxZoom": "max_zoom",
    "geojsonVtOptions": "geojson_vt_options",
    "superclusterOptions": "supercluster_options",
}


@dataclass
class SourceParams:
    """Parameters of one source load."""
    source: str
    url: Optional[str] = None
    data: Union[str, Dict[str, Any], None] = None
    cluster: bool = False
    max_zoom: Optional[int] = None
    geojson_vt_options: Dict[str, Any] = field(default_factory=dict)
    supercluster_options: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not isinstance(self.source, str) or not self.source:
            raise InputError("A source id is required")
        self.cluster = bool(self.cluster)
        self.geojson_vt_options = dict(self.geojson_vt_options or {})
        self.supercluster_options = dict(self.supercluster_options or {})

    @classmethod
    def from_dict(cls, params: Mapping[str, Any]) -> "SourceParams":
        """
        Build parameters from a request mapping.

        Unknown keys are ignored.

        Raises:
            InputError: If ``source`` is missing
        """
        if isinstance(params, SourceParams):
            return params
        if not isinstance(params, Mapping):
            raise InputError("Source parameters must be an object")

        kwargs = {}
        for key, value in params.items():
            name = FIELD_ALIASES.get(key, key)
            if name in cls.__dataclass_fields__:
                kwargs[name] = value

        if "source" not in kwargs:
            raise InputError("A source id is required")
        return cls(**kwargs)

    def validate_data_reference(self) -> None:
        """
        Check that exactly one of ``url`` and ``data`` is given.

        Raises:
            InputError: If both or neither are present
        """
        has_url = bool(self.url)
        has_data = self.data is not None
        if has_url and has_data:
            raise InputError("Only one of url or data may be given")
        if not has_url and not has_data:
            raise InputError("Either url or data must be given")
