"""Tests for lockfile serialization and deserialization.

Validates ``to_dict``, ``to_json``, ``write`` (serialization),
``from_dict``, ``from_json``, ``read`` (deserialization), byte-identical
output for identical content, and full round-trip fidelity through JSON
and disk I/O.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Callable

import pytest

from envlock.core.lockfile import LockedPackage, Lockfile


# ===========================================================================
# Serialization: to_dict, to_json, write
# ===========================================================================


class TestSerialization:
    """Validate lockfile serialization to dict, JSON, and file."""

    def test_to_dict_structure(self, lockfile: Lockfile) -> None:
        """to_dict produces every top-level key of the format."""
        d = lockfile.to_dict()
        assert d["lock_version"] == "1.0"
        assert d["generated_by"] == "envlock"
        assert d["manifest_hash"].startswith("sha256:")
        assert d["requires_python"] == ">=3.9"
        assert d["groups"] == ["default", "test"]
        assert d["metadata"] == {"total_packages": 5, "resolution_strategy": "backtracking"}

    def test_packages_sorted_by_name(self, lockfile: Lockfile) -> None:
        names = [entry["name"] for entry in lockfile.to_dict()["packages"]]
        assert names == ["iniconfig", "pluggy", "pytest", "requests", "urllib3"]

    def test_entry_fields(self, lockfile: Lockfile) -> None:
        entry = lockfile.to_dict()["packages"][3]
        assert entry == {
            "name": "requests",
            "version": "2.32.3",
            "dependencies": {"urllib3": ">=2.0"},
            "required_by": {"<root>": "^=2.31"},
            "groups": ["default"],
            "inputs": entry["inputs"],
        }

    def test_no_timestamps(self, lockfile: Lockfile) -> None:
        text = lockfile.to_json()
        assert "generated_at" not in text
        assert "timestamp" not in text

    def test_to_json_newline_terminated(self, lockfile: Lockfile) -> None:
        text = lockfile.to_json()
        assert text.endswith("}\n")
        assert json.loads(text)["lock_version"] == "1.0"

    def test_insertion_order_irrelevant(self, make_locked_package: Callable[..., LockedPackage]) -> None:
        """Identical content gives byte-identical JSON."""
        a = make_locked_package(name="alpha")
        b = make_locked_package(name="bravo")
        first = Lockfile(manifest_hash="sha256:" + "0" * 64, groups=["default"])
        second = Lockfile(manifest_hash="sha256:" + "0" * 64, groups=["default"])
        first.add_package(a)
        first.add_package(b)
        second.add_package(b)
        second.add_package(a)
        assert first.to_json() == second.to_json()

    def test_write_creates_file(self, lockfile: Lockfile, tmp_path: Path) -> None:
        path = tmp_path / "envlock.lock.json"
        lockfile.write(path)
        assert path.read_text(encoding="utf-8") == lockfile.to_json()
        assert list(tmp_path.iterdir()) == [path]

    def test_write_replaces_existing(self, lockfile: Lockfile, tmp_path: Path) -> None:
        path = tmp_path / "envlock.lock.json"
        path.write_text("old", encoding="utf-8")
        lockfile.write(path)
        assert json.loads(path.read_text(encoding="utf-8"))["lock_version"] == "1.0"

    def test_failed_replace_keeps_original(
        self, lockfile: Lockfile, tmp_path: Path, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """A failing rename leaves the old lock intact and no temp file behind."""
        path = tmp_path / "envlock.lock.json"
        path.write_text("old", encoding="utf-8")

        def fail_replace(src: str, dst: Path) -> None:
            raise OSError("disk full")

        monkeypatch.setattr("envlock.core.atomic.os.replace", fail_replace)
        with pytest.raises(OSError, match="disk full"):
            lockfile.write(path)
        assert path.read_text(encoding="utf-8") == "old"
        assert list(tmp_path.glob(".envlock.lock.json.*.tmp")) == []
        assert list(tmp_path.iterdir()) == [path]


# ===========================================================================
# Deserialization and round trips
# ===========================================================================


class TestDeserialization:
    """Validate reading lockfiles back."""

    def test_json_round_trip(self, lockfile: Lockfile) -> None:
        restored = Lockfile.from_json(lockfile.to_json())
        assert restored == lockfile
        assert restored.to_json() == lockfile.to_json()

    def test_disk_round_trip(self, lockfile: Lockfile, tmp_path: Path) -> None:
        path = tmp_path / "envlock.lock.json"
        lockfile.write(path)
        assert Lockfile.read(path) == lockfile

    def test_read_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            Lockfile.read(tmp_path / "envlock.lock.json")

    def test_restored_entries_keep_digests(self, lockfile: Lockfile) -> None:
        restored = Lockfile.from_json(lockfile.to_json())
        for pkg in restored.packages:
            assert pkg.inputs == lockfile.get_package(pkg.name).inputs
