"""
HTTP 客户端管理模块

统一管理 httpx.AsyncClient 连接池：上游生成接口与生成图片的 CDN 各按 host 复用一个客户端。
"""

from contextlib import asynccontextmanager
from urllib.parse import urlparse
from typing import Dict

import httpx

DEFAULT_CLIENT_CONFIG = {
    "headers": {
        "Accept": "*/*",
        "Accept-Encoding": "identity",
    },
    "http2": True,
    "verify": True,
    "follow_redirects": True,
}


class ClientManager:
    """
    HTTP 客户端管理器

    - 按 host 维度复用 httpx.AsyncClient
    - 通过 init() 注入默认配置（headers/http2/verify/follow_redirects 等）
    - transport 可注入（测试中传入 httpx.MockTransport）
    """

    def __init__(self, pool_size: int = 100, max_keepalive_connections: int = 20, transport=None) -> None:
        self.pool_size = pool_size
        self.max_keepalive_connections = max_keepalive_connections
        self.transport = transport
        self.clients: Dict[str, httpx.AsyncClient] = {}
        self.default_config: dict = dict(DEFAULT_CLIENT_CONFIG)

    async def init(self, default_config: dict) -> None:
        """设置默认 client 配置"""
        self.default_config = default_config

    @asynccontextmanager
    async def get_client(self, url: str):
        """获取或创建 url 所在 host 对应的 AsyncClient"""
        host = urlparse(url).netloc

        if host not in self.clients:
            timeout = httpx.Timeout(
                connect=15.0,
                read=None,  # 生成耗时不固定，不设读超时
                write=300.0,  # data URI 输入图可能很大
                pool=10.0,
            )
            limits = httpx.Limits(
                max_connections=self.pool_size,
                max_keepalive_connections=self.max_keepalive_connections,
            )

            client_config = {
                **self.default_config,
                "timeout": timeout,
                "limits": limits,
            }
            if self.transport is not None:
                client_config["transport"] = self.transport

            self.clients[host] = httpx.AsyncClient(**client_config)

        # 不在这里关闭客户端，由 close() 统一管理连接池生命周期
        yield self.clients[host]

    async def close(self) -> None:
        """关闭所有已创建的 AsyncClient，并清空连接池"""
        for client in self.clients.values():
            await client.aclose()
        self.clients.clear()
