"""
Cloudflare Workers Python 入口（wrangler.toml 中 `main = "worker.py"`）。

Worker 的 vars / secrets 只在每次请求的 `env` 上可见：
请求期间把 env 绑定到 contextvars，首个请求在该上下文中加载 ProxyConfig 并缓存到 app.state，
之后转交给 Cloudflare 运行时提供的 `asgi` 适配器。
"""

from __future__ import annotations

from core.cf_env import cf_env_context
from core.config import get_app_config
from core.error_response import create_error_response
from core.log_config import logger
from main import app

try:
    from asgi import fetch as asgi_fetch
except ImportError as e:  # pragma: no cover
    asgi_fetch = None
    _adapter_error = str(e)
else:
    _adapter_error = None


async def on_fetch(request, env):
    if asgi_fetch is None:
        logger.error(f"Workers asgi adapter unavailable: {_adapter_error}")
        return create_error_response(f"Cloudflare Python runtime adapter 'asgi' is unavailable: {_adapter_error}", 500)

    with cf_env_context(env):
        get_app_config(app)
        return await asgi_fetch(app, request, env)
