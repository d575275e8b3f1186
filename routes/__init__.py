"""
API 路由模块

"""

from fastapi import APIRouter

# 创建主路由器
api_router = APIRouter()

# 导入并注册子路由
from routes.models import router as models_router
from routes.images import router as images_router
from routes.chat import router as chat_router

api_router.include_router(models_router, tags=["Models"])
api_router.include_router(images_router, tags=["Images"])
api_router.include_router(chat_router, tags=["Chat"])

__all__ = ["api_router"]
