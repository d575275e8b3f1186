"""
代理访问鉴权

与上游 SILICONFLOW_API_KEY 完全独立：
- 未配置任何 ALLOW_CLIENT_KEY(S) / ACCESS_* 时不鉴权（公开访问）
- 配置后客户端必须携带代理访问密钥，否则 401

密钥位置（按顺序）：
1. Authorization: Bearer <proxy_key>（推荐），也接受不带 Bearer 前缀的原始值
2. x-api-key 头部
3. URL 查询参数 access_token / key / token / apikey
"""

import re
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from core.config import get_app_config
from core.error_response import AuthenticationError

# 设置 auto_error=False 以便我们自己处理缺失的情况
security = HTTPBearer(auto_error=False)

QUERY_TOKEN_PARAMS = ("access_token", "key", "token", "apikey")

_BEARER_PREFIX = re.compile(r"^Bearer\s+", re.IGNORECASE)


def _extract_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials] = None) -> Optional[str]:
    if credentials and credentials.credentials:
        return credentials.credentials.strip()

    # HTTPBearer 只认 "Bearer <token>"；其余写法按原始头部值处理
    raw = _BEARER_PREFIX.sub("", request.headers.get("authorization") or "").strip()
    if raw:
        return raw

    if request.headers.get("x-api-key"):
        return request.headers.get("x-api-key").strip()

    for name in QUERY_TOKEN_PARAMS:
        value = (request.query_params.get(name) or "").strip()
        if value:
            return value

    return None


async def verify_proxy_key(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[str]:
    """校验代理访问密钥，返回通过校验的 token（未启用鉴权时返回 None）。"""
    config = get_app_config(request.app)
    if not config.auth_enabled:
        return None

    token = _extract_token(request, credentials)
    if token and token in config.client_keys:
        return token

    raise AuthenticationError("Unauthorized: missing/invalid access token")
