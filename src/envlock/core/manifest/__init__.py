"""Project manifest: reading, validation, and editing.

Submodules:
    models  -- Manifest, DependencyGroup
    reader  -- read_manifest, parse_manifest (YAML -> validated Manifest)
    editor  -- add_requirement, remove_requirement, write_manifest
"""

from envlock.core.manifest.models import DEFAULT_GROUP, DependencyGroup, Manifest
from envlock.core.manifest.reader import (
    MANIFEST_FILENAME,
    manifest_from_data,
    parse_manifest,
    read_manifest,
)
from envlock.core.manifest.editor import (
    add_requirement,
    dump_manifest,
    remove_requirement,
    write_manifest,
)

__all__ = [
    "DEFAULT_GROUP",
    "MANIFEST_FILENAME",
    "DependencyGroup",
    "Manifest",
    "add_requirement",
    "dump_manifest",
    "manifest_from_data",
    "parse_manifest",
    "read_manifest",
    "remove_requirement",
    "write_manifest",
]
