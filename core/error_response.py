"""
错误响应处理模块

提供标准化的 OpenAI 风格错误响应，确保所有错误返回格式一致：

    {"error": {"message": "...", "type": "..."}}

错误类型说明：
- invalid_request_error: 请求参数错误 / 路由不存在 (400, 404, 405)
- authentication_error: 代理访问密钥缺失或无效 (401)
- internal_error: 上游调用失败、取图失败、请求体解析失败等 (500)
"""

from typing import Dict, Optional

from fastapi.responses import JSONResponse


# 状态码 -> 错误类型
ERROR_TYPE_MAP = {
    400: "invalid_request_error",
    401: "authentication_error",
    404: "invalid_request_error",
    405: "invalid_request_error",
    500: "internal_error",
}


class ProxyError(Exception):
    """代理内部可直接映射为错误响应的异常基类。"""

    status_code = 500
    error_type = "internal_error"
    headers: Optional[Dict[str, str]] = None

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_response(self) -> JSONResponse:
        return create_error_response(self.message, self.status_code, self.error_type, self.headers)


class AuthenticationError(ProxyError):
    """代理访问密钥缺失或无效。"""

    status_code = 401
    error_type = "authentication_error"
    headers = {"WWW-Authenticate": 'Bearer realm="proxy", error="invalid_token"'}


class InvalidRequestError(ProxyError):
    """请求校验失败（缺少 model / prompt / messages、编辑模型缺少输入图等）。"""

    status_code = 400
    error_type = "invalid_request_error"


class UpstreamError(ProxyError):
    """上游生成接口或图片下载失败，整个请求视为失败，不重试。"""

    status_code = 500
    error_type = "internal_error"


def create_error_response(
    message: str,
    status_code: int = 500,
    error_type: Optional[str] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """
    创建标准 OpenAI 风格的错误响应

    参数:
        message: 错误信息描述
        status_code: HTTP 状态码
        error_type: 错误类型，如果为 None 则根据 status_code 自动推断
        headers: 额外响应头（例如 401 时的 WWW-Authenticate）
    """
    if error_type is None:
        error_type = ERROR_TYPE_MAP.get(status_code, "internal_error")

    return JSONResponse(
        status_code=status_code,
        content={"error": {"message": message, "type": error_type}},
        headers=headers,
    )
