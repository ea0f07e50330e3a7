"""
模组匹配服务

为手动添加的模组（没有注册中心 manifest）在 Modrinth 上查找可能的对应项目。
"""

import asyncio
import os
from typing import Any, Dict, List, Optional

from loguru import logger

from modresolve.exceptions import ModResolveError, ValidationError
from modresolve.models import MatchCandidate, MatchSearchResult, SearchHit
from modresolve.services.match_scorer import (
    check_version_match,
    clean_mod_name,
    match_reasons,
    meaningful_words,
    score,
)
from modresolve.services.mod_analyzer import ModAnalyzer

PRIMARY_THRESHOLD = 0.3
BROAD_THRESHOLD = 0.15
ENRICHED_CANDIDATES = 3
MAX_RESULTS = 5
SEARCH_LIMIT = 10


def broadened_queries(search_name: str) -> List[str]:
    """精确名称没有结果时依次尝试的宽泛搜索词"""
    words = meaningful_words(search_name)
    queries = []
    if len(words) >= 2:
        queries.append(" ".join(words[:2]))
        if len(words) >= 3:
            queries.append(" ".join(words[:3]))

    cleaned = clean_mod_name(search_name)
    if cleaned != search_name and cleaned not in queries:
        queries.append(cleaned)

    if words and len(words[0]) > 4:
        queries.append(words[0])
    return queries


class ModMatcher:
    """模组模糊匹配器"""

    def __init__(self, client, analyzer: Optional[ModAnalyzer] = None, loader: str = "fabric"):
        self.client = client
        self.analyzer = analyzer
        self.loader = loader

    def _score_hits(
        self,
        hits: List[SearchHit],
        name: str,
        version: Optional[str],
        metadata: Optional[Dict[str, Any]],
        threshold: float,
    ) -> List[MatchCandidate]:
        candidates = []
        for hit in hits:
            value = score(name, version, hit, metadata)
            if value <= threshold:
                continue
            candidates.append(
                MatchCandidate(
                    project_id=hit.project_id,
                    slug=hit.slug,
                    title=hit.title,
                    score=value,
                    reasons=match_reasons(name, version, hit, metadata),
                    description=hit.description,
                    downloads=hit.downloads,
                    author=hit.author,
                )
            )
        return candidates

    async def _enrich(self, candidate: MatchCandidate, version: Optional[str], loader: str):
        try:
            versions = await self.client.get_versions(candidate.project_id, loader, None)
        except ModResolveError as e:
            logger.warning(f"[匹配] 获取 {candidate.title} 的版本列表失败: {e}")
            return
        candidate.available_versions = [v.version_number for v in versions]
        candidate.has_matching_version = check_version_match(version, versions) if version else False

    async def search_matches(
        self,
        mod_path: Optional[str] = None,
        mod_name: Optional[str] = None,
        mod_version: Optional[str] = None,
        loader: Optional[str] = None,
    ) -> MatchSearchResult:
        """
        搜索可能匹配的注册中心项目

        Args:
            mod_path: 本地 JAR 路径，存在时读取其元数据
            mod_name: 备用名称
            mod_version: 备用版本
            loader: 搜索使用的加载器，默认为匹配器的加载器

        Returns:
            MatchSearchResult: 按得分排序的前 5 个候选项
        """
        loader = loader or self.loader
        metadata = None
        if mod_path and os.path.exists(mod_path) and self.analyzer is not None:
            metadata = await self.analyzer.read_metadata(mod_path)

        search_name = (metadata or {}).get("name") or mod_name
        if not search_name and mod_path:
            search_name = os.path.basename(mod_path)
            if search_name.endswith(".jar"):
                search_name = search_name[: -len(".jar")]
        if not search_name:
            raise ValidationError("缺少模组名称或路径")
        search_version = (metadata or {}).get("version") or mod_version

        logger.info(f"[匹配] 搜索 {search_name} ({search_version or '未知版本'})")
        hits, total_hits = await self.client.search(search_name, loader, None, limit=SEARCH_LIMIT)
        matches = self._score_hits(hits, search_name, search_version, metadata, PRIMARY_THRESHOLD)
        matches.sort(key=lambda m: m.score, reverse=True)

        if matches:
            await asyncio.gather(
                *(self._enrich(m, search_version, loader) for m in matches[:ENRICHED_CANDIDATES])
            )
        else:
            for query in broadened_queries(search_name):
                logger.debug(f"[匹配] 尝试宽泛搜索: {query}")
                hits, _ = await self.client.search(query, loader, None, limit=SEARCH_LIMIT)
                if not hits:
                    continue
                matches.extend(
                    self._score_hits(hits, search_name, search_version, metadata, BROAD_THRESHOLD)
                )
                matches.sort(key=lambda m: m.score, reverse=True)
                if matches:
                    break

        logger.info(f"[匹配] {search_name}: 找到 {len(matches)} 个候选项")
        return MatchSearchResult(
            matches=matches[:MAX_RESULTS],
            searched_name=search_name,
            searched_version=search_version,
            metadata=metadata,
            total_hits=total_hits,
        )
