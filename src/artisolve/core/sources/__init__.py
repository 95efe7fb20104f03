"""Declared sources, their locations and the Depfile manifest format."""

from artisolve.core.sources.locations import (
    GitLocation,
    Location,
    PathLocation,
    RegistryLocation,
    StoreLocation,
)
from artisolve.core.sources.source import Source
from artisolve.core.sources.manifest import ManifestParser, parse_manifest

__all__ = [
    "GitLocation",
    "Location",
    "PathLocation",
    "RegistryLocation",
    "StoreLocation",
    "Source",
    "ManifestParser",
    "parse_manifest",
]
