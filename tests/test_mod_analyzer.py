"""Tests for JAR metadata extraction."""

import io
import json
import zipfile

import aiohttp
import pytest

from modresolve.exceptions import AnalysisError
from modresolve.services.mod_analyzer import JarModAnalyzer, maven_range_to_expr

FORGE_TOML = """
modLoader="javafml"
loaderVersion="[47,)"

[[mods]]
modId="examplemod"
version="1.0.0"
displayName="Example Mod"
authors="Alice, Bob"

[[dependencies.examplemod]]
modId="forge"
mandatory=true
versionRange="[47,)"

[[dependencies.examplemod]]
modId="jei"
mandatory=false
versionRange="[15.2,16)"

[[dependencies.examplemod]]
modId="cloth_config"
type="required"
versionRange="[11.1]"
"""


def build_jar(files):
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as z:
        for name, content in files.items():
            z.writestr(name, content)
    return buffer.getvalue()


def write_jar(tmp_path, name, files):
    path = tmp_path / name
    path.write_bytes(build_jar(files))
    return str(path)


@pytest.mark.asyncio
async def test_fabric_metadata(tmp_path):
    fabric = {
        "id": "sodium",
        "version": "0.5.8",
        "name": "Sodium",
        "authors": ["JellySquid", {"name": "IMS"}],
        "depends": {"fabricloader": ">=0.12", "minecraft": "1.20.x", "fabric-api": "*"},
        "suggests": {"modmenu": "*"},
    }
    jar = write_jar(tmp_path, "sodium.jar", {"fabric.mod.json": json.dumps(fabric)})
    analyzer = JarModAnalyzer()

    metadata = await analyzer.read_metadata(jar)

    assert metadata["loader_type"] == "fabric"
    assert metadata["authors"] == ["JellySquid", "IMS"]
    deps = {d["id"]: d for d in await analyzer.extract_dependencies(jar)}
    assert deps["fabricloader"]["version_requirement"] == ">=0.12"
    assert deps["fabric-api"]["version_requirement"] is None
    assert deps["modmenu"]["dependency_type"] == "optional"


@pytest.mark.asyncio
async def test_quilt_metadata():
    quilt = {
        "quilt_loader": {
            "id": "qmod",
            "version": "1.0.0",
            "metadata": {"name": "Q Mod", "contributors": {"Alice": "Owner"}},
            "depends": ["quilt_loader", {"id": "qsl", "versions": ">=6"}, {"id": "emi", "optional": True}],
        }
    }
    metadata = await JarModAnalyzer().read_metadata(build_jar({"quilt.mod.json": json.dumps(quilt)}))

    assert metadata["name"] == "Q Mod"
    assert metadata["authors"] == ["Alice"]
    assert [(d["id"], d["dependency_type"], d["version_requirement"]) for d in metadata["dependencies"]] == [
        ("quilt_loader", "required", None),
        ("qsl", "required", ">=6"),
        ("emi", "optional", None),
    ]


@pytest.mark.asyncio
async def test_forge_and_neoforge_metadata():
    analyzer = JarModAnalyzer()

    metadata = await analyzer.read_metadata(build_jar({"META-INF/mods.toml": FORGE_TOML}))
    assert metadata["id"] == "examplemod"
    assert metadata["name"] == "Example Mod"
    assert metadata["authors"] == ["Alice", "Bob"]
    assert metadata["loader_type"] == "forge"
    assert [(d["id"], d["dependency_type"], d["version_requirement"]) for d in metadata["dependencies"]] == [
        ("forge", "required", ">=47"),
        ("jei", "optional", ">=15.2 <16"),
        ("cloth_config", "required", "11.1"),
    ]

    neo = await analyzer.read_metadata(build_jar({"META-INF/neoforge.mods.toml": FORGE_TOML}))
    assert neo["loader_type"] == "neoforge"


@pytest.mark.asyncio
async def test_unrecognized_jars(tmp_path):
    analyzer = JarModAnalyzer()
    assert await analyzer.read_metadata(build_jar({"readme.txt": "hi"})) is None
    assert await analyzer.read_metadata(b"not a zip") is None
    assert await analyzer.extract_dependencies(str(tmp_path / "missing.jar")) == []


def test_maven_range_to_expr():
    assert maven_range_to_expr("[1.20,1.21)") == ">=1.20 <1.21"
    assert maven_range_to_expr("(1.0,]") == ">1.0"
    assert maven_range_to_expr("[1.2]") == "1.2"
    assert maven_range_to_expr("1.0") == "1.0"
    assert maven_range_to_expr("[0,)") is None
    assert maven_range_to_expr("*") is None
    assert maven_range_to_expr(None) is None


class FakeContent:
    def __init__(self, data):
        self.data = data

    async def iter_chunked(self, size):
        for i in range(0, len(self.data), size):
            yield self.data[i : i + size]


class FakeResponse:
    def __init__(self, status, data=b""):
        self.status = status
        self.content = FakeContent(data)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    closed = False

    def __init__(self, result):
        self.result = result

    def get(self, url):
        if isinstance(self.result, BaseException):
            raise self.result
        return self.result


@pytest.mark.asyncio
async def test_analyze_from_url():
    jar = build_jar({"META-INF/mods.toml": FORGE_TOML})
    analyzer = JarModAnalyzer(session=FakeSession(FakeResponse(200, jar)))
    deps = await analyzer.analyze_from_url("https://cdn.example/example.jar", "examplemod")
    assert [d["id"] for d in deps] == ["forge", "jei", "cloth_config"]

    analyzer = JarModAnalyzer(session=FakeSession(FakeResponse(404)))
    assert await analyzer.analyze_from_url("https://cdn.example/missing.jar") == []

    analyzer = JarModAnalyzer(session=FakeSession(aiohttp.ClientConnectionError("refused")))
    with pytest.raises(AnalysisError):
        await analyzer.analyze_from_url("https://cdn.example/down.jar")
