import os
import re
from typing import Final, List, Optional

_TRUE_VALUES: Final[set[str]] = {"1", "true", "yes", "y", "on"}
_FALSE_VALUES: Final[set[str]] = {"0", "false", "no", "n", "off"}

_LIST_SEPARATOR = re.compile(r"[,\s]+")


def env_bool(name: str, default: bool = False) -> bool:
    """读取布尔类型环境变量。

    兼容常见写法：1/0, true/false, yes/no, on/off。
    """

    raw = os.getenv(name)
    if raw is None:
        return default

    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    return default


def split_list(raw: Optional[str]) -> List[str]:
    """按逗号/空白拆分配置字符串，去掉空项。"""
    if not raw:
        return []
    return [item for item in _LIST_SEPARATOR.split(str(raw)) if item]
