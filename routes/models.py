"""
Models 路由
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from core.auth import verify_proxy_key
from core.handler import ImageProxyHandler
from routes.deps import get_handler

router = APIRouter()


@router.get("/v1/models", dependencies=[Depends(verify_proxy_key)])
async def list_models(handler: ImageProxyHandler = Depends(get_handler)):
    """列出可用模型。

    来自 MODELS_JSON（JSON 数组）或 MODELS（逗号/空白分隔），都未配置时返回空列表。
    """
    return JSONResponse(content=handler.list_models())
