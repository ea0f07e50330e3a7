"""Tests for the local mod directory service."""

import json

import pytest

from conftest import add_mod
from modresolve.exceptions import ModFileError, ValidationError
from modresolve.models import InstalledModInfo
from modresolve.services.compatibility import CompatibilityChecker
from modresolve.services.mod_files import ModFileManager


def test_invalid_server_path(tmp_path):
    with pytest.raises(ValidationError):
        ModFileManager("")
    with pytest.raises(ValidationError) as exc_info:
        ModFileManager(str(tmp_path / "nope"))
    assert exc_info.value.context["path"].endswith("nope")


def test_list_mods_merges_locations(server_dir):
    add_mod(server_dir, "sodium.jar")
    add_mod(server_dir, "iris.jar", disabled=True)
    (server_dir / "client" / "mods").mkdir(parents=True)
    (server_dir / "client" / "mods" / "sodium.jar").write_bytes(b"PK")
    (server_dir / "mods" / "notes.txt").write_text("ignored")

    mods = ModFileManager(str(server_dir)).list_mods()

    assert mods == [
        {"file_name": "iris.jar", "locations": ["disabled"]},
        {"file_name": "sodium.jar", "locations": ["server", "client"]},
    ]


@pytest.mark.asyncio
async def test_installed_mod_info_reads_manifests(server_dir):
    add_mod(
        server_dir,
        "sodium.jar",
        {"projectId": "AANobbMI", "versionId": "v1", "versionNumber": "0.5.8", "name": "Sodium"},
    )
    add_mod(server_dir, "mystery-1.0.jar")
    add_mod(server_dir, "old.jar", {"projectId": "old", "version": "unknown"}, disabled=True)

    mods = {m.file_name: m for m in await ModFileManager(str(server_dir)).get_installed_mod_info()}

    sodium = mods["sodium.jar"]
    assert sodium.project_id == "AANobbMI"
    assert sodium.version_number == "0.5.8"
    assert sodium.location == "server"
    assert sodium.file_path == str(server_dir / "mods" / "sodium.jar")

    mystery = mods["mystery-1.0.jar"]
    assert mystery.project_id is None
    assert mystery.name == "mystery-1.0"

    old = mods["old.jar"]
    assert old.location == "disabled"
    assert old.version_number is None


@pytest.mark.asyncio
async def test_unreadable_manifest_is_skipped(server_dir):
    add_mod(server_dir, "broken.jar")
    (server_dir / "minecraft-core-manifests" / "broken.jar.json").write_text("{oops")

    mods = await ModFileManager(str(server_dir)).get_installed_mod_info()

    assert mods[0].project_id is None


@pytest.mark.asyncio
async def test_disabled_mods_union(server_dir):
    add_mod(server_dir, "a.jar", disabled=True)
    (server_dir / "mods" / "b.jar.disabled").write_bytes(b"PK")
    manager = ModFileManager(str(server_dir))
    await manager.save_disabled_mods(["c.jar", "a.jar", "c.jar"])

    saved = json.loads((server_dir / ".modresolve" / "disabled-mods.json").read_text())
    assert saved == ["a.jar", "c.jar"]
    assert await manager.get_disabled_mods() == ["a.jar", "c.jar", "b.jar"]


@pytest.mark.asyncio
async def test_disabled_list_format_errors(server_dir):
    manager = ModFileManager(str(server_dir))
    (server_dir / ".modresolve").mkdir()
    (server_dir / ".modresolve" / "disabled-mods.json").write_text('{"a.jar": true}')
    with pytest.raises(ModFileError):
        await manager.get_disabled_mods()

    with pytest.raises(ValidationError):
        await manager.save_disabled_mods("a.jar")


@pytest.mark.parametrize("raw", ["unknown", "Unknown", " UNKNOWN "])
def test_unknown_manifest_version_is_dropped(raw):
    info = InstalledModInfo.from_manifest({"projectId": "x", "versionNumber": raw}, file_name="x-1.4.0.jar")
    assert info.version_number is None


@pytest.mark.asyncio
async def test_unknown_version_falls_back_to_filename(fake_client, server_dir):
    add_mod(server_dir, "thing-1.4.0.jar", {"projectId": "thing", "version": "Unknown"})
    fake_client.versions["thing"] = []

    results = await CompatibilityChecker(fake_client).check_mod_compatibility(str(server_dir), "1.21.1", "0.16.5")

    assert results[0].current_version == "1.4.0"
