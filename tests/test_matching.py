"""Tests for fuzzy matching of unidentified mod files."""

import json

import pytest

from conftest import make_version
from modresolve.exceptions import ValidationError
from modresolve.models import SearchHit
from modresolve.services.match_scorer import (
    check_version_match,
    clean_mod_name,
    match_reasons,
    meaningful_words,
    score,
)
from modresolve.services.match_store import MatchStatus, MatchStore
from modresolve.services.mod_matcher import ModMatcher, broadened_queries


def hit(title, slug=None, project_id=None, downloads=0, author=None, versions=()):
    return SearchHit(
        project_id=project_id or (slug or title.lower()),
        slug=slug or title.lower().replace(" ", "-"),
        title=title,
        downloads=downloads,
        author=author,
        versions=list(versions),
    )


def test_identical_name_and_slug_scores_at_least_0_8():
    assert score("sodium", None, hit("Sodium", slug="sodium")) >= 0.8


def test_score_components():
    assert score("Sodium Extra", None, hit("Sodium")) == pytest.approx(0.6)
    assert score("iris-shaders-mod", None, hit("Iris Shaders", slug="iris")) == pytest.approx(0.5)
    # two of three words shared
    assert score("Better Combat Tweaks", None, hit("Better Combat Addon", slug="bca")) == pytest.approx(
        2 / 3 * 0.4
    )
    assert score("zzz", None, hit("Unrelated", slug="other")) == 0.0


def test_score_bonuses_and_cap():
    candidate = hit("Sodium", slug="sodium", downloads=5_000_000, author="jellysquid", versions=["0.5.8"])
    metadata = {"authors": ["JellySquid"]}
    assert score("Sodium", "0.5.8", candidate, metadata) == 1.0
    assert score("Sodium Extra", "0.5.8", hit("Sodium", versions=["0.5.8"])) == pytest.approx(0.8)
    assert score("Sodium Extra", None, hit("Sodium", downloads=20_000)) == pytest.approx(0.7)


def test_score_handles_missing_input():
    assert score("", None, hit("Sodium")) == 0.0
    assert score("Sodium", None, None) == 0.0


def test_match_reasons():
    candidate = hit("Sodium", slug="sodium", downloads=200_000, author="jellysquid", versions=["0.5.8"])
    reasons = match_reasons("Sodium", "0.5.8", candidate, {"authors": ["jellysquid"]})
    assert reasons == ["Exact name match", "Version available", "Same author", "Popular mod"]
    assert match_reasons("Sodium Extra", None, hit("Sodium")) == ["Similar name"]


def test_clean_mod_name():
    assert clean_mod_name("Sodium-Extra-fabric-0.5.4") == "Sodium"
    assert clean_mod_name("the-xyz-mod") == "xyz"
    assert clean_mod_name("abc-items-1.2") == "abc items"
    assert clean_mod_name("1.2.3") == "1.2.3"
    assert clean_mod_name("") == ""


def test_meaningful_words_drop_stopwords():
    assert meaningful_words("The Fabric Waystones Mod for MC") == ["waystones"]
    assert meaningful_words("Just Enough Items") == ["just", "enough", "items"]


def test_check_version_match():
    versions = [make_version("a", "2.0.0+fabric"), make_version("b", "v1.5.0")]
    assert check_version_match("2.0.0", versions)
    assert check_version_match("1.5.0-fabric", versions)
    assert check_version_match("1.5.0", ["1.5.0-build.3"])
    assert not check_version_match("3.0.0", versions)
    assert not check_version_match(None, versions)


def test_broadened_queries():
    assert broadened_queries("Just Enough Items Mod") == [
        "just enough",
        "just enough items",
        "Just",
    ]
    assert broadened_queries("x") == []


@pytest.mark.asyncio
async def test_search_matches_primary(fake_client):
    fake_client.search_results["Sodium"] = [
        hit("Sodium", slug="sodium", project_id="AANobbMI", downloads=1_000_000),
        hit("Unrelated Thing", slug="unrelated"),
    ]
    fake_client.versions["AANobbMI"] = [make_version("s1", "0.5.8+mc1.20.1")]

    result = await ModMatcher(fake_client).search_matches(mod_name="Sodium", mod_version="0.5.8")

    assert result.searched_name == "Sodium"
    assert [m.project_id for m in result.matches] == ["AANobbMI"]
    top = result.matches[0]
    assert top.available_versions == ["0.5.8+mc1.20.1"]
    assert top.has_matching_version is True
    assert result.total_hits == 2


@pytest.mark.asyncio
async def test_search_matches_broadened(fake_client):
    fake_client.search_results["waystones"] = [hit("Waystones", slug="waystones")]

    result = await ModMatcher(fake_client).search_matches(mod_name="waystones-fabric-mod")

    assert [m.slug for m in result.matches] == ["waystones"]
    assert ("search", "waystones") in fake_client.calls


@pytest.mark.asyncio
async def test_search_matches_uses_jar_metadata(fake_client, fake_analyzer, tmp_path):
    jar = tmp_path / "renamed.jar"
    jar.write_bytes(b"PK")
    fake_analyzer.metadata[str(jar)] = {"name": "Lithium", "version": "0.13.0", "authors": ["caffeinemc"]}
    fake_client.search_results["Lithium"] = [hit("Lithium", slug="lithium", author="CaffeineMC")]

    result = await ModMatcher(fake_client, fake_analyzer).search_matches(mod_path=str(jar))

    assert result.searched_name == "Lithium"
    assert result.searched_version == "0.13.0"
    assert result.matches[0].score == pytest.approx(1.0)
    assert "Same author" in result.matches[0].reasons


@pytest.mark.asyncio
async def test_search_matches_limits_to_five(fake_client):
    fake_client.search_results["Craft"] = [hit(f"Craft {i}", slug=f"craft-{i}") for i in range(8)]
    result = await ModMatcher(fake_client).search_matches(mod_name="Craft")
    assert len(result.matches) == 5


@pytest.mark.asyncio
async def test_search_matches_requires_a_name(fake_client):
    with pytest.raises(ValidationError):
        await ModMatcher(fake_client).search_matches()


@pytest.mark.asyncio
async def test_match_store_lifecycle(tmp_path):
    path = tmp_path / "config" / "matches.json"
    store = MatchStore(str(path))
    assert await store.load() == 0
    assert store.get_status("a.jar") == MatchStatus.UNKNOWN

    store.set_search_result("a.jar", {"matches": []})
    assert store.get_status("a.jar") == MatchStatus.SEARCHED
    store.set_pending("a.jar", {"matches": [{"project_id": "x"}]})
    assert store.get_status("a.jar") == MatchStatus.PENDING
    assert [p["file_name"] for p in store.get_all_pending()] == ["a.jar"]

    await store.confirm("a.jar", "x", {"title": "X"})
    assert store.get_status("a.jar") == MatchStatus.CONFIRMED
    assert store.get_pending("a.jar") is None

    store.reject("b.jar")
    assert store.get_status("b.jar") == MatchStatus.REJECTED
    assert store.is_rejected("b.jar")

    saved = json.loads(path.read_text())
    assert saved["confirmed"][0][0] == "a.jar"
    assert saved["confirmed"][0][1]["project_id"] == "x"

    reloaded = MatchStore(str(path))
    assert await reloaded.load() == 1
    assert reloaded.get_confirmed("a.jar")["data"] == {"title": "X"}

    await reloaded.clear("a.jar")
    assert reloaded.get_status("a.jar") == MatchStatus.UNKNOWN
    assert json.loads(path.read_text())["confirmed"] == []


@pytest.mark.asyncio
async def test_match_store_ignores_corrupt_file(tmp_path):
    path = tmp_path / "matches.json"
    path.write_text("{not json")
    assert await MatchStore(str(path)).load() == 0
