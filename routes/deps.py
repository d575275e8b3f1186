"""
路由共享依赖项

提供配置、上游客户端、请求处理器与请求体解析等共享功能
"""

import json
from typing import Any, Dict

from fastapi import Request

from core.client_manager import ClientManager
from core.config import get_app_config
from core.error_response import ProxyError
from core.handler import ImageProxyHandler
from core.upstream import SiliconFlowClient


def get_client_manager(app) -> ClientManager:
    """获取共享连接池；Workers 环境下 lifespan 可能未执行，按需创建。"""
    client_manager = getattr(app.state, "client_manager", None)
    if client_manager is None:
        client_manager = ClientManager()
        app.state.client_manager = client_manager
    return client_manager


async def get_handler(request: Request) -> ImageProxyHandler:
    """每个请求构建一个处理器，配置与连接池为进程级共享的只读对象。"""
    config = get_app_config(request.app)
    upstream = SiliconFlowClient(config, get_client_manager(request.app))
    return ImageProxyHandler(config, upstream)


async def read_json_body(request: Request) -> Dict[str, Any]:
    """
    解析 JSON 请求体

    - 空请求体视为 {}
    - 非对象 JSON（数组、字符串等）视为 {}，交给后续字段校验报错
    - 无法解析时按内部错误返回，消息中带上解析失败原因
    """
    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        body = json.loads(raw)
    except ValueError as e:
        raise ProxyError(f"Invalid JSON body: {e}")
    return body if isinstance(body, dict) else {}
