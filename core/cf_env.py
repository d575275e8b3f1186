"""
Cloudflare Workers 运行时上下文工具。

- 使用 contextvars 在请求作用域保存当前 Cloudflare env
- 提供按名称读取 binding / 配置项的辅助函数（Worker 的 vars/secrets 优先，其次进程环境变量）
"""

from __future__ import annotations

import os
import contextvars
from contextlib import contextmanager
from typing import Any, Optional


_cf_env_var: contextvars.ContextVar[Any] = contextvars.ContextVar("cf_env", default=None)


def set_cf_env(env: Any) -> contextvars.Token:
    """设置当前请求的 Cloudflare env，返回 token 供 reset 使用。"""
    return _cf_env_var.set(env)


def reset_cf_env(token: contextvars.Token) -> None:
    """恢复到 set_cf_env 之前的上下文。"""
    _cf_env_var.reset(token)


def get_cf_env(default: Any = None) -> Any:
    """获取当前请求作用域中的 Cloudflare env。"""
    env = _cf_env_var.get()
    return default if env is None else env


def _read_binding(env: Any, name: str) -> Any:
    """从 Cloudflare env 对象中读取 binding。"""
    if env is None:
        return None

    # dict-like
    if isinstance(env, dict):
        return env.get(name)

    # mapping-like（JsProxy 等对象可能不支持 get，出错时退回属性读取）
    getter = getattr(env, "get", None)
    if callable(getter):
        try:
            value = getter(name)
        except (KeyError, TypeError, AttributeError):
            value = None
        if value is not None:
            return value

    # attribute-like
    return getattr(env, name, None)


def get_binding(name: str) -> Any:
    """按 binding 名称读取当前请求 env 中的对象，未绑定时返回 None。"""
    return _read_binding(get_cf_env(), name)


def get_setting(name: str, default: Optional[str] = None) -> Optional[str]:
    """读取字符串配置项。

    顺序：当前请求的 Cloudflare env（vars / secrets）-> os.environ -> default。
    空字符串视为未配置。
    """
    value = get_binding(name)
    if value is None or value == "":
        value = os.getenv(name)
    if value is None or value == "":
        return default
    return str(value)


@contextmanager
def cf_env_context(env: Any):
    """在上下文中临时设置 Cloudflare env。"""
    token = set_cf_env(env)
    try:
        yield
    finally:
        reset_cf_env(token)
