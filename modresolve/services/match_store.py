"""
匹配决策存储

按文件名记录模糊匹配的决策状态。只有已确认的匹配会持久化到 JSON 文件，
其余状态只保存在内存中。

文件格式::

    {"confirmed": [["<文件名>", {"project_id": ..., "data": {...}, "confirmed_at": ...}]],
     "saved_at": <unix 时间戳>}
"""

import json
import os
import time
from enum import Enum
from typing import Any, Dict, List, Optional

import aiofiles
from loguru import logger


class MatchStatus(Enum):
    """匹配状态"""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"
    SEARCHED = "searched"
    UNKNOWN = "unknown"


class MatchStore:
    """匹配决策存储"""

    def __init__(self, path: str):
        self.path = path
        self._searched: Dict[str, Dict[str, Any]] = {}
        self._pending: Dict[str, Dict[str, Any]] = {}
        self._confirmed: Dict[str, Dict[str, Any]] = {}
        self._rejected: Dict[str, Dict[str, Any]] = {}

    async def load(self) -> int:
        """从磁盘加载已确认的匹配，返回加载数量；文件损坏时从空状态开始"""
        if not os.path.exists(self.path):
            logger.debug(f"[匹配] 没有已确认匹配文件: {self.path}")
            return 0
        try:
            async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
                data = json.loads(await f.read())
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"[匹配] 读取已确认匹配失败: {e}")
            return 0

        entries = data.get("confirmed") if isinstance(data, dict) else None
        if not isinstance(entries, list):
            logger.warning(f"[匹配] 已确认匹配文件格式无效: {self.path}")
            return 0
        for entry in entries:
            if isinstance(entry, list) and len(entry) == 2 and isinstance(entry[1], dict):
                self._confirmed[entry[0]] = entry[1]
        logger.debug(f"[匹配] 已加载 {len(self._confirmed)} 个已确认匹配")
        return len(self._confirmed)

    async def save(self):
        """保存已确认的匹配"""
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        payload = {
            "confirmed": [[name, data] for name, data in self._confirmed.items()],
            "saved_at": time.time(),
        }
        async with aiofiles.open(self.path, "w", encoding="utf-8") as f:
            await f.write(json.dumps(payload, indent=2, ensure_ascii=False))
        logger.debug(f"[匹配] 已保存 {len(self._confirmed)} 个已确认匹配")

    def set_search_result(self, file_name: str, data: Dict[str, Any]):
        self._searched[file_name] = {**data, "last_updated": time.time()}

    def get_search_result(self, file_name: str) -> Optional[Dict[str, Any]]:
        return self._searched.get(file_name)

    def set_pending(self, file_name: str, data: Dict[str, Any]):
        """记录等待用户确认的候选项"""
        logger.info(f"[匹配] {file_name} 等待确认")
        self._pending[file_name] = {**data, "created_at": time.time()}

    def get_pending(self, file_name: str) -> Optional[Dict[str, Any]]:
        return self._pending.get(file_name)

    def get_all_pending(self) -> List[Dict[str, Any]]:
        return [{"file_name": name, **data} for name, data in self._pending.items()]

    def remove_pending(self, file_name: str) -> bool:
        return self._pending.pop(file_name, None) is not None

    async def confirm(self, file_name: str, project_id: str, data: Optional[Dict[str, Any]] = None):
        """确认匹配并立即持久化"""
        logger.info(f"[匹配] 确认 {file_name} -> {project_id}")
        self._confirmed[file_name] = {
            "project_id": project_id,
            "data": data or {},
            "confirmed_at": time.time(),
        }
        self._rejected.pop(file_name, None)
        self.remove_pending(file_name)
        await self.save()

    def get_confirmed(self, file_name: str) -> Optional[Dict[str, Any]]:
        return self._confirmed.get(file_name)

    def get_all_confirmed(self) -> List[Dict[str, Any]]:
        return [{"file_name": name, **data} for name, data in self._confirmed.items()]

    def reject(self, file_name: str, reason: str = "User rejected"):
        logger.info(f"[匹配] 拒绝 {file_name}: {reason}")
        self._rejected[file_name] = {"rejected_at": time.time(), "reason": reason}
        self.remove_pending(file_name)

    def is_rejected(self, file_name: str) -> bool:
        return file_name in self._rejected

    async def clear(self, file_name: str):
        """清除某个文件的全部匹配数据（模组被删除或重置决策时）"""
        had_confirmed = file_name in self._confirmed
        for store in (self._searched, self._pending, self._confirmed, self._rejected):
            store.pop(file_name, None)
        if had_confirmed:
            await self.save()

    def get_status(self, file_name: str) -> MatchStatus:
        if file_name in self._confirmed:
            return MatchStatus.CONFIRMED
        if file_name in self._pending:
            return MatchStatus.PENDING
        if file_name in self._rejected:
            return MatchStatus.REJECTED
        if file_name in self._searched:
            return MatchStatus.SEARCHED
        return MatchStatus.UNKNOWN
