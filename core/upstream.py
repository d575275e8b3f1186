"""
SiliconFlow 上游调用

- generate(payload): POST {SF_BASE}/images/generations，返回 {"images": [{"url": ...}, ...]}
- fetch_image(url): 下载生成结果（b64_json 输出时使用）

上游密钥只来自服务端配置，不接受客户端覆盖。任何非 2xx 都直接抛 UpstreamError，不重试。
"""

import json
import asyncio
from typing import Any, Dict

import httpx

from core.config import ProxyConfig
from core.client_manager import ClientManager
from core.error_response import UpstreamError
from core.log_config import logger


async def check_response(response: httpx.Response, error_log: str) -> None:
    """非 2xx 时读取响应体并抛出 UpstreamError（消息里保留上游状态行与原始响应体）。"""
    if 200 <= response.status_code < 300:
        return

    body = await response.aread()
    text = body.decode("utf-8", errors="replace")
    logger.error(f"{error_log} HTTP Error {response.status_code}: {text[:500]}")
    raise UpstreamError(f"Upstream {response.status_code} {response.reason_phrase}: {text}")


class SiliconFlowClient:
    def __init__(self, config: ProxyConfig, client_manager: ClientManager) -> None:
        self.config = config
        self.client_manager = client_manager

    def _upstream_key(self) -> str:
        if not self.config.upstream_key:
            raise UpstreamError("SILICONFLOW_API_KEY not configured")
        return self.config.upstream_key

    async def generate(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = self.config.images_url
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._upstream_key()}",
        }
        json_payload = await asyncio.to_thread(json.dumps, payload, ensure_ascii=False)

        try:
            async with self.client_manager.get_client(url) as client:
                response = await client.post(url, headers=headers, content=json_payload.encode("utf-8"))
                await check_response(response, "images/generations")
                response_bytes = await response.aread()
        except httpx.HTTPError as e:
            logger.error(f"Upstream request to {url} failed: {e!r}")
            raise UpstreamError(f"Upstream request failed: {e}") from e

        try:
            return await asyncio.to_thread(json.loads, response_bytes)
        except json.JSONDecodeError as e:
            raise UpstreamError(f"Upstream returned invalid JSON: {e}") from e

    async def fetch_image(self, url: str) -> bytes:
        logger.debug(f"Fetching generated image: {url}")
        try:
            async with self.client_manager.get_client(url) as client:
                response = await client.get(url)
                if not (200 <= response.status_code < 300):
                    raise UpstreamError(f"Fetch image failed: {response.status_code}")
                return await response.aread()
        except httpx.HTTPError as e:
            logger.error(f"Fetch image {url} failed: {e!r}")
            raise UpstreamError(f"Fetch image failed: {e}") from e
