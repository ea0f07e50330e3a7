"""Pytest configuration for modresolve tests."""

import json
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from modresolve.exceptions import APIServerError
from modresolve.models import (
    InstalledModInfo,
    ProjectInfo,
    ResolverConfig,
    SearchHit,
    VersionInfo,
)


def make_version(
    version_id: str,
    version_number: str,
    game_versions=("1.21.1",),
    loaders=("fabric",),
    dependencies=None,
    date_published: Optional[str] = None,
    version_type: str = "release",
    **extra,
) -> VersionInfo:
    """Build a VersionInfo the way the registry would return it."""
    data = {
        "id": version_id,
        "name": version_number,
        "version_number": version_number,
        "game_versions": list(game_versions),
        "loaders": list(loaders),
        "dependencies": dependencies if dependencies is not None else [],
        "files": [
            {
                "url": f"https://cdn.example/{version_id}.jar",
                "filename": f"{version_id}.jar",
                "primary": True,
            }
        ],
        "date_published": date_published,
        "version_type": version_type,
    }
    data.update(extra)
    return VersionInfo.from_modrinth(data)


def make_project(project_id: str, title: str, slug: Optional[str] = None) -> ProjectInfo:
    return ProjectInfo(id=project_id, slug=slug or title.lower().replace(" ", "-"), title=title)


class FakeClient:
    """In-memory stand-in for ModrinthClient."""

    def __init__(self):
        self.projects: Dict[str, ProjectInfo] = {}
        self.versions: Dict[str, List[VersionInfo]] = {}
        self.version_infos: Dict[str, VersionInfo] = {}
        self.search_results: Dict[str, List[SearchHit]] = {}
        self.failing: set = set()
        self.calls: List[tuple] = []
        self.cache_clears = 0
        self.closed = False

    def add_project(self, project: ProjectInfo, versions: Optional[List[VersionInfo]] = None):
        self.projects[project.id] = project
        if project.slug:
            self.projects[project.slug] = project
        if versions is not None:
            self.versions[project.id] = versions
            for v in versions:
                self.version_infos[v.id] = v

    def _check(self, project_id):
        if project_id in self.failing:
            raise APIServerError(f"API 服务器错误: {project_id}")

    async def get_project(self, idx):
        self.calls.append(("get_project", idx))
        self._check(idx)
        return self.projects.get(idx)

    async def get_versions(self, project_id, loader=None, game_version=None, latest_only=False):
        self.calls.append(("get_versions", project_id, loader, game_version, latest_only))
        self._check(project_id)
        versions = [
            v
            for v in self.versions.get(project_id, [])
            if not game_version or game_version in v.game_versions
        ]
        if latest_only and versions:
            stable = next((v for v in versions if v.is_stable), None)
            return [stable or versions[0]]
        return versions

    async def get_version_info(self, project_id, version_id=None, loader=None, game_version=None):
        self.calls.append(("get_version_info", project_id, version_id))
        self._check(project_id)
        if version_id:
            return self.version_infos.get(version_id)
        latest = await self.get_versions(project_id, loader, game_version, latest_only=True)
        return latest[0] if latest else None

    async def search(self, query, loader=None, version=None, limit=10, offset=0):
        self.calls.append(("search", query))
        hits = self.search_results.get(query, [])
        return hits[offset : offset + limit], len(hits)

    async def get_fabric_loader_version(self, mc_version):
        return "0.16.5"

    async def get_quilt_loader_version(self, mc_version):
        return None

    def clear_version_cache(self):
        self.cache_clears += 1

    async def close(self):
        self.closed = True


class FakeAnalyzer:
    """Returns canned JAR scan results keyed by path or URL."""

    def __init__(self):
        self.local: Dict[str, list] = {}
        self.remote: Dict[str, list] = {}
        self.metadata: Dict[str, dict] = {}
        self.calls: List[tuple] = []
        self.closed = False

    async def read_metadata(self, jar):
        self.calls.append(("read_metadata", jar))
        return self.metadata.get(jar)

    async def extract_dependencies(self, jar_path):
        self.calls.append(("extract_dependencies", jar_path))
        return self.local.get(jar_path, [])

    async def analyze_from_url(self, url, mod_id=None):
        self.calls.append(("analyze_from_url", url))
        return self.remote.get(url, [])

    async def close(self):
        self.closed = True


@pytest.fixture
def fake_client():
    return FakeClient()


@pytest.fixture
def fake_analyzer():
    return FakeAnalyzer()


@pytest.fixture
def server_dir(tmp_path):
    """Create an empty server directory layout."""
    server = tmp_path / "server"
    (server / "mods").mkdir(parents=True)
    (server / "mods_disabled").mkdir()
    (server / "minecraft-core-manifests").mkdir()
    return server


def add_mod(server: Path, file_name: str, manifest: Optional[dict] = None, disabled: bool = False):
    """Drop a mod file (and optionally its manifest) into a server directory."""
    directory = server / ("mods_disabled" if disabled else "mods")
    (directory / file_name).write_bytes(b"PK")
    if manifest is not None:
        data = {"fileName": file_name, **manifest}
        (server / "minecraft-core-manifests" / f"{file_name}.json").write_text(json.dumps(data))


def installed(project_id: str, version: Optional[str] = None, file_name: Optional[str] = None, **kwargs):
    return InstalledModInfo(
        file_name=file_name or f"{project_id}.jar",
        project_id=project_id,
        version_number=version,
        name=kwargs.pop("name", project_id.title()),
        **kwargs,
    )


@pytest.fixture
def config(server_dir, tmp_path):
    return ResolverConfig.from_dict(
        {
            "minecraft": {"version": "1.21.1", "loader": "fabric", "loader_version": "0.16.5"},
            "paths": {
                "server": str(server_dir),
                "matches_file": str(tmp_path / "matches.json"),
            },
            "api": {"rate_limit": 0, "max_retries": 0},
        }
    )
