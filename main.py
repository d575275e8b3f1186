"""
SiliconFlow Images -> OpenAI 兼容代理

端点：
  - POST /v1/images/generations
  - POST /v1/chat/completions   // message.content 为 Markdown 图片：![image](URL 或 data:URI)
  - GET  /v1/models             // 可配置模型清单（MODELS_JSON / MODELS）
  - OPTIONS /*                  // CORS 预检
"""

import os
import tomllib
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.log_config import logger
from core.env import env_bool
from core.config import load_config
from core.client_manager import ClientManager, DEFAULT_CLIENT_CONFIG
from core.error_response import ProxyError, create_error_response
from routes import api_router

# DEBUG 环境变量支持 true/false/1/0/yes/no
is_debug = env_bool("DEBUG", False)

# 从 pyproject.toml 读取版本号
try:
    with open("pyproject.toml", "rb") as f:
        VERSION = tomllib.load(f)["project"]["version"]
except (OSError, KeyError, tomllib.TOMLDecodeError):
    VERSION = "unknown"
logger.info("VERSION: %s", VERSION)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # 配置与连接池在进程内只初始化一次
    if getattr(app.state, "config", None) is None:
        app.state.config = load_config()
    config = app.state.config
    logger.info(
        "Upstream: %s, auth: %s, upstream key configured: %s",
        config.sf_base,
        "enabled" if config.auth_enabled else "disabled",
        bool(config.upstream_key),
    )

    if getattr(app.state, "client_manager", None) is None:
        app.state.client_manager = ClientManager()
        await app.state.client_manager.init(DEFAULT_CLIENT_CONFIG)

    yield

    await app.state.client_manager.close()


app = FastAPI(lifespan=lifespan, debug=is_debug, title="SiliconFlow Image Proxy", version=VERSION)
app.include_router(api_router)


@app.exception_handler(ProxyError)
async def proxy_error_handler(request: Request, exc: ProxyError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return exc.to_response()


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code in (404, 405):
        return create_error_response(f"No route for {request.method} {request.url.path}", 404)
    return create_error_response(str(exc.detail), exc.status_code)


@app.middleware("http")
async def catch_unhandled_errors(request: Request, call_next):
    # 未预期的异常同样返回统一错误结构，不返回部分结果
    try:
        return await call_next(request)
    except Exception as e:
        logger.exception(f"Unhandled error on {request.method} {request.url.path}: {e}")
        return create_error_response(str(e) or e.__class__.__name__, 500, "internal_error")


# 配置 CORS 中间件（最外层，错误响应同样带 CORS 头）
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    max_age=86400,
)


if __name__ == "__main__":
    import uvicorn

    PORT = int(os.getenv("PORT", "8000"))
    RELOAD = env_bool("RELOAD", False)

    uvicorn_config = {
        "host": "0.0.0.0",
        "port": PORT,
        "ws": "none",
    }

    if RELOAD:
        uvicorn_config.update({
            "reload": True,
            "reload_dirs": ["./"],
            "reload_includes": ["*.py"],
        })
        uvicorn.run("main:app", **uvicorn_config)
    else:
        uvicorn.run(app, **uvicorn_config)
