"""
Adapters layer - Snapshot loading from external storage.
"""

from .yaml_snapshot import SnapshotFile, YamlSnapshotProvider, read_snapshot

__all__ = ["SnapshotFile", "YamlSnapshotProvider", "read_snapshot"]
