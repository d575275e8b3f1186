"""
Images 路由
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from core.auth import verify_proxy_key
from core.handler import ImageProxyHandler
from routes.deps import get_handler, read_json_body

router = APIRouter()


@router.post("/v1/images/generations", dependencies=[Depends(verify_proxy_key)])
async def images_generations(
    body: Dict[str, Any] = Depends(read_json_body),
    handler: ImageProxyHandler = Depends(get_handler),
):
    """
    生成图像

    兼容 OpenAI Images API 格式；n 张图通过顺序多次调用或 sf_batch_size 批量生成
    """
    return JSONResponse(content=await handler.generate(body))
