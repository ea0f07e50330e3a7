"""
模糊匹配评分

将本地无元数据的模组（只有文件名或 JAR 内名称）与注册中心搜索结果做相似度评分。
"""

import re
from typing import Any, Dict, Iterable, List, Optional, Union

from modresolve.models import SearchHit, VersionInfo

STOPWORDS = {"the", "mod", "for", "and", "with", "but", "new", "old", "api", "fabric", "forge", "mc"}
_NAME_STOPWORDS = {"the", "mod", "for", "and", "with", "but", "new", "old"}
_WORD_SPLIT = re.compile(r"[\s\-_]+")

# 清理规则按顺序应用
_CLEAN_RULES = (
    re.compile(r"[-_\s]*\d+\.\d+[.\d]*[-\w]*$", re.IGNORECASE),
    re.compile(r"[-_\s]*(fabric|forge|quilt|mod|api)$", re.IGNORECASE),
    re.compile(r"[-_\s]*mc\d+[.\d]*$", re.IGNORECASE),
    re.compile(r"[-_\s]*(client|server)$", re.IGNORECASE),
    re.compile(r"[-_\s]*(fix|patch|update)$", re.IGNORECASE),
)

_LOADER_SUFFIX = re.compile(r"[-_+](fabric|forge|quilt|neoforge).*$", re.IGNORECASE)


def _split_words(name: str) -> List[str]:
    return [w for w in _WORD_SPLIT.split(name) if w]


def _name_score(local: str, title: str, slug: str):
    """名称相似度得分与原因"""
    if local == title:
        return 0.8, "Exact name match", "Exact name match"
    if title and (title in local or local in title):
        return 0.6, "Name similarity", "Similar name"
    if slug and (local == slug or slug in local):
        return 0.5, "Slug similarity", "Matches project slug"

    words = _WORD_SPLIT.split(local)
    candidate_words = _WORD_SPLIT.split(title)
    common = sum(
        1
        for word in words
        if len(word) > 2 and any(cw and (cw in word or word in cw) for cw in candidate_words)
    )
    if common:
        return common / max(len(words), len(candidate_words)) * 0.4, f"{common} common words", None
    return 0.0, None, None


def _author_matches(candidate: SearchHit, metadata: Optional[Dict[str, Any]]) -> bool:
    if not metadata or not metadata.get("authors") or not candidate.author:
        return False
    author = candidate.author.lower()
    return any(str(a).lower() == author for a in metadata["authors"])


def _version_available(local_version: Optional[str], candidate: SearchHit) -> bool:
    return bool(local_version and candidate.versions and local_version in candidate.versions)


def score(
    local_name: Optional[str],
    local_version: Optional[str],
    candidate: Optional[SearchHit],
    metadata: Optional[Dict[str, Any]] = None,
) -> float:
    """
    计算匹配得分

    名称（精确 0.8 / 包含 0.6 / slug 0.5 / 共同词最多 0.4）互斥计分，
    版本存在 +0.2，作者相同 +0.3，下载量超过一万 +0.1，上限 1.0。
    """
    if not local_name or candidate is None:
        return 0.0

    total, _, _ = _name_score(local_name.lower(), candidate.title.lower(), candidate.slug.lower())
    if _version_available(local_version, candidate):
        total += 0.2
    if _author_matches(candidate, metadata):
        total += 0.3
    if candidate.downloads > 10000:
        total += 0.1
    return min(total, 1.0)


def match_reasons(
    local_name: Optional[str],
    local_version: Optional[str],
    candidate: Optional[SearchHit],
    metadata: Optional[Dict[str, Any]] = None,
) -> List[str]:
    """生成可读的匹配原因"""
    if not local_name or candidate is None:
        return []

    reasons = []
    _, _, name_reason = _name_score(local_name.lower(), candidate.title.lower(), candidate.slug.lower())
    if name_reason:
        reasons.append(name_reason)
    if _version_available(local_version, candidate):
        reasons.append("Version available")
    if _author_matches(candidate, metadata):
        reasons.append("Same author")
    if candidate.downloads > 100000:
        reasons.append("Popular mod")
    return reasons


def clean_mod_name(name: Optional[str]) -> str:
    """
    去掉版本号、加载器、Minecraft 版本等后缀，得到更宽泛的搜索词

    >>> clean_mod_name("Sodium-Extra-fabric-0.5.4")
    'Sodium'
    """
    if not name:
        return ""

    cleaned = name
    for rule in _CLEAN_RULES:
        cleaned = rule.sub("", cleaned)
    cleaned = cleaned.strip()
    if not cleaned:
        return name

    words = [w for w in _split_words(cleaned) if len(w) > 2 and w.lower() not in _NAME_STOPWORDS]
    if words:
        if len(words[0]) <= 3 and len(words) > 1:
            return " ".join(words[:2])
        return words[0]
    return cleaned


def meaningful_words(name: Optional[str]) -> List[str]:
    """长度大于 2 且不在停用词表中的小写词"""
    if not name:
        return []
    return [w for w in _split_words(name.lower()) if len(w) > 2 and w not in STOPWORDS]


def normalize_version(version: str) -> str:
    return re.sub(r"^v", "", _LOADER_SUFFIX.sub("", version.lower())).strip()


def check_version_match(
    search_version: Optional[str], available: Iterable[Union[VersionInfo, str]]
) -> bool:
    """
    检查本地版本是否出现在候选项目的版本列表中

    比较前去掉加载器后缀和 v 前缀，并允许以 - + _ 分隔的前缀匹配。
    """
    if not search_version:
        return False

    wanted = normalize_version(search_version)
    for version in available or []:
        raw = version if isinstance(version, str) else (version.version_number or version.name or "")
        candidate = normalize_version(raw)
        if not candidate:
            continue
        if wanted == candidate:
            return True
        for sep in "-+_":
            if candidate.startswith(wanted + sep) or wanted.startswith(candidate + sep):
                return True
    return False
