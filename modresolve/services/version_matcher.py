"""
版本匹配服务

实现版本号比较、版本范围匹配（>=、<=、~、^、.x）以及依赖版本要求检查。

比较规则：
    - 按 "." 和 "-" 切分，以数字开头的片段取开头的整数比较（如 "2+mc1" 取 2），
      其余按小写字符串比较；
    - 同一位置上数字片段总是大于字符串片段；
    - 一方是另一方的严格前缀时，较长一方多出的第一个片段若为字符串
      （beta、rc、pre 等预发布标记），则较长一方更旧；否则较长一方更新。
      即 1.2.0-beta < 1.2.0 < 1.2.0.1，1.0 < 1.0.1。
"""

import re
from typing import Iterable, List, Optional, Sequence, Union

from modresolve.models import ModLoader, VersionInfo

VersionRange = Union[str, Sequence[str]]

_SEGMENT_SPLIT = re.compile(r"[.\-]")
_LEADING_DIGITS = re.compile(r"[0-9]+")
_LEADING_V = re.compile(r"^[vV](?=\d)")
_WILDCARD_TAIL = re.compile(r"\.[xX*].*$")
_OPERATORS = (">=", "<=", ">", "<", "=")


def _tokenize(version: str) -> List[Union[int, str]]:
    tokens: List[Union[int, str]] = []
    for part in _SEGMENT_SPLIT.split(_LEADING_V.sub("", version.strip())):
        if not part:
            continue
        digits = _LEADING_DIGITS.match(part)
        tokens.append(int(digits.group()) if digits else part.lower())
    return tokens


def compare_versions(a: Optional[str], b: Optional[str]) -> int:
    """
    比较两个版本号

    Returns:
        -1 表示 a < b，0 表示相等，1 表示 a > b。任一参数为空时返回 0。
    """
    if not a or not b:
        return 0
    a, b = str(a), str(b)
    if a == b:
        return 0

    left, right = _tokenize(a), _tokenize(b)
    for x, y in zip(left, right):
        if isinstance(x, int) and isinstance(y, int):
            if x != y:
                return 1 if x > y else -1
        elif isinstance(x, str) and isinstance(y, str):
            if x != y:
                return 1 if x > y else -1
        else:
            return 1 if isinstance(x, int) else -1

    if len(left) == len(right):
        return 0
    if len(left) > len(right):
        return -1 if isinstance(left[len(right)], str) else 1
    return 1 if isinstance(right[len(left)], str) else -1


def _split_operator(expr: str) -> tuple[Optional[str], str]:
    for op in _OPERATORS:
        if expr.startswith(op):
            return op, expr[len(op):].strip()
    return None, expr


def _check_bound(op: str, bound: str, target: str) -> bool:
    if not bound:
        return False
    result = compare_versions(target, bound)
    if op == ">=":
        return result >= 0
    if op == ">":
        return result > 0
    if op == "<=":
        return result <= 0
    if op == "<":
        return result < 0
    return result == 0


def _join_operators(tokens: List[str]) -> List[str]:
    """把单独的运算符与其后的版本号合并，如 [">=", "1.2"] -> [">=1.2"]"""
    joined: List[str] = []
    pending = ""
    for token in tokens:
        if token in _OPERATORS:
            if pending:
                joined.append(pending)
            pending = token
            continue
        joined.append(pending + token)
        pending = ""
    if pending:
        joined.append(pending)
    return joined


def _major_minor(version: str) -> List[str]:
    return version.split(".")[:2]


def satisfies(version_range: Optional[VersionRange], target: Optional[str]) -> bool:
    """
    检查目标版本是否满足版本范围

    Args:
        version_range: 版本范围表达式，或表达式列表（任一满足即可）
        target: 待检查的版本

    Returns:
        是否满足。无法识别的表达式返回 False，从不抛出异常。
    """
    if not version_range or not target:
        return False

    if isinstance(version_range, (list, tuple, set, frozenset)):
        return any(satisfies(item, target) for item in version_range)

    expr = str(version_range).strip()
    target = str(target).strip()

    if expr == target or expr == "*":
        return True

    # 组合范围，如 ">=1.21.2 <=1.21.3"
    tokens = _join_operators(expr.split())
    if len(tokens) > 1:
        lower = next((t for t in tokens if t.startswith(">")), None)
        upper = next((t for t in tokens if t.startswith("<")), None)
        if lower and upper:
            return all(
                _check_bound(*_split_operator(bound), target) for bound in (lower, upper)
            )

    # 通配符，如 "1.21.x" 或 "1.21.*"
    if ".x" in expr.lower() or ".*" in expr:
        base = _WILDCARD_TAIL.sub("", expr)
        return target.startswith(base + ".")

    op, bound = _split_operator(expr)
    if op is not None:
        return bool(bound) and _check_bound(op, bound, target)

    # ~1.2.3 只比较主版本号和次版本号，忽略补丁号
    if expr.startswith("~"):
        base = expr[1:].strip()
        return bool(base) and _major_minor(base) == _major_minor(target)

    # ^1.2.3 要求主版本号相同且不低于基准版本
    if expr.startswith("^"):
        base = expr[1:].strip()
        base_tokens, target_tokens = _tokenize(base), _tokenize(target)
        if not base_tokens or not target_tokens:
            return False
        return base_tokens[0] == target_tokens[0] and compare_versions(target, base) >= 0

    return False


def check_requirement(version: Optional[str], requirement: Optional[VersionRange]) -> bool:
    """
    检查已安装版本是否满足依赖声明的版本要求

    没有版本要求时总是满足；有要求但版本未知时视为不满足。
    """
    if not requirement:
        return True
    if not version:
        return False
    return satisfies(requirement, version)


def sort_by_date(versions: Iterable[VersionInfo]) -> List[VersionInfo]:
    """按发布时间排序（最新在前），缺少日期的排在最后"""
    return sorted(versions, key=lambda v: v.date_published or "", reverse=True)


class VersionMatcher:
    """版本匹配器"""

    def __init__(self, client=None):
        self.client = client

    compare = staticmethod(compare_versions)
    satisfies = staticmethod(satisfies)
    check_requirement = staticmethod(check_requirement)

    def pick_version(
        self,
        versions: Sequence[VersionInfo],
        requirement: Optional[VersionRange] = None,
    ) -> tuple[Optional[VersionInfo], Optional[VersionInfo]]:
        """
        从版本列表中选出要安装的版本

        Returns:
            tuple: (满足要求的最新版本, 最新版本)
        """
        ordered = sort_by_date(versions)
        if not ordered:
            return None, None
        latest = ordered[0]
        if not requirement:
            return latest, latest
        for version in ordered:
            if version.version_number and check_requirement(version.version_number, requirement):
                return version, latest
        return None, latest

    async def get_loader_version(
        self,
        loader: ModLoader,
        mc_version: str,
    ) -> Optional[str]:
        """
        获取模组加载器版本

        Args:
            loader: 加载器类型
            mc_version: Minecraft 版本

        Returns:
            加载器版本或 None
        """
        if not self.client:
            return None

        if loader == ModLoader.FABRIC:
            return await self.client.get_fabric_loader_version(mc_version)
        elif loader == ModLoader.QUILT:
            return await self.client.get_quilt_loader_version(mc_version)

        return None
