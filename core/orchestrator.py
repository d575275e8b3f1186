"""
生成调度

根据请求张数 n 与 batch_size 选择调用策略：
- 指定了 batch_size 且 n == 1：上游单次批量调用，结果按上游顺序返回
- 其他情况：顺序调用 n 次，每次取第一张图；模板未指定 seed 时每次注入新的随机 seed

调用严格串行，任一次失败立即中止整个请求，不返回部分结果。
"""

import random
from typing import Any, Awaitable, Callable, Dict, List

from core.error_response import UpstreamError
from core.log_config import logger
from core.params import MAX_IMAGES, MIN_IMAGES

GenerateFunc = Callable[[Dict[str, Any]], Awaitable[Dict[str, Any]]]
SeedSource = Callable[[], int]

SEED_UPPER_BOUND = 10 ** 10


def random_seed() -> int:
    return random.randrange(SEED_UPPER_BOUND)


def image_urls(response: Any) -> List[str]:
    """从上游响应中按顺序取出 images[].url。"""
    if not isinstance(response, dict):
        return []
    images = response.get("images")
    if not isinstance(images, list):
        return []
    return [item["url"] for item in images if isinstance(item, dict) and item.get("url")]


class GenerationOrchestrator:
    def __init__(self, generate: GenerateFunc, seed_source: SeedSource = random_seed) -> None:
        self.generate = generate
        self.seed_source = seed_source

    async def run(self, template: Dict[str, Any], n: int = 1) -> List[str]:
        n = max(MIN_IMAGES, min(MAX_IMAGES, int(n)))

        if template.get("batch_size") and n == 1:
            logger.info(f"model={template.get('model')} strategy=batch batch_size={template['batch_size']}")
            return await self._run_batch(template)

        logger.info(f"model={template.get('model')} strategy=sequential n={n}")
        return await self._run_sequential(template, n)

    async def _run_batch(self, template: Dict[str, Any]) -> List[str]:
        urls = image_urls(await self.generate(dict(template)))
        if not urls:
            raise UpstreamError("Upstream did not return image url")
        return urls

    async def _run_sequential(self, template: Dict[str, Any], n: int) -> List[str]:
        urls: List[str] = []
        for _ in range(n):
            payload = dict(template)
            if "seed" not in payload:
                payload["seed"] = self.seed_source()
            returned = image_urls(await self.generate(payload))
            if not returned:
                raise UpstreamError("Upstream did not return image url")
            urls.append(returned[0])
        return urls
