"""
文件名启发式

在缺少注册中心元数据时，从模组文件名中推断版本号和 Minecraft 兼容性。
结果只是尽力而为的近似判断，有元数据时应优先使用元数据。
"""

import re
from typing import Optional

from modresolve.models import FilenameCompatibility

_JAR_SUFFIX = re.compile(r"\.jar(\.disabled)?$", re.IGNORECASE)

# 按顺序尝试，第一个命中的模式生效
_VERSION_PATTERNS = (
    re.compile(r"[-_](\d+\.\d+\.\d+[\w.-]*)"),
    re.compile(r"[-_]v(\d+\.\d+\.\d+[\w.-]*)"),
    re.compile(r"[_](\d+\.\d+\.\d+[\w.-]*)"),
    re.compile(r"\s+(\d+\.\d+\.\d+[\w.-]*)"),
    re.compile(r"[\[(](\d+\.\d+\.\d+[\w.-]*?)[)\]]"),
    re.compile(r"mc\d+\.\d+\.\d+[^\d]*(\d+\.\d+[.\d]*[\w-]*)"),
    re.compile(r"(\d+\.\d+[.\d]*[\w-]*)$"),
)

_MC_VERSION_PATTERN = re.compile(r"\d+\.\d+(?:\.\d+)?")


def strip_jar_suffix(filename: str) -> str:
    """去掉 .jar / .jar.disabled 后缀"""
    return _JAR_SUFFIX.sub("", filename)


def extract_version(filename: Optional[str]) -> Optional[str]:
    """
    从文件名中提取版本号

    >>> extract_version("mymod-1.2.3.jar")
    '1.2.3'
    """
    if not filename:
        return None
    clean_name = strip_jar_suffix(filename)
    for pattern in _VERSION_PATTERNS:
        match = pattern.search(clean_name)
        if match and match.group(1):
            return match.group(1)
    return None


def matches_minecraft_version(
    filename: Optional[str], mc_version: Optional[str]
) -> FilenameCompatibility:
    """
    根据文件名中的版本号片段判断是否兼容目标 Minecraft 版本

    文件名中没有任何版本号片段时置信度为 low，否则为 medium。
    """
    if not filename or not mc_version:
        return FilenameCompatibility(is_compatible=False, confidence="low")

    candidates = _MC_VERSION_PATTERN.findall(filename.lower())
    if not candidates:
        return FilenameCompatibility(is_compatible=False, confidence="low")

    for candidate in candidates:
        if candidate == mc_version or mc_version.startswith(candidate):
            return FilenameCompatibility(is_compatible=True, confidence="medium")
    return FilenameCompatibility(is_compatible=False, confidence="medium")
