"""
Chat 路由
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from core.auth import verify_proxy_key
from core.handler import ImageProxyHandler
from routes.deps import get_handler, read_json_body

router = APIRouter()


@router.post("/v1/chat/completions", dependencies=[Depends(verify_proxy_key)])
async def chat_completions(
    body: Dict[str, Any] = Depends(read_json_body),
    handler: ImageProxyHandler = Depends(get_handler),
):
    """
    以聊天接口生成图像

    取 messages 中最新的 user 消息为 prompt，message.content 为 Markdown 图片：![image](URL 或 data:URI)
    """
    return JSONResponse(content=await handler.chat_complete(body))
