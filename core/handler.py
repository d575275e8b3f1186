"""
请求处理模块

ImageProxyHandler 组合各环节，分别实现三个端点的业务逻辑：

- generate:      /v1/images/generations
- chat_complete: /v1/chat/completions（最新 user 消息为 prompt，返回 Markdown 图片）
- list_models:   /v1/models

处理器只依赖显式传入的 ProxyConfig 与上游客户端，不读取全局状态，便于单测。
"""

from time import time
from typing import Any, Dict, Optional, Protocol

from core.config import ProxyConfig, configured_model_ids
from core.error_response import InvalidRequestError
from core.image_ref import (
    extract_from_body,
    extract_image_ref,
    latest_message,
    message_text,
    strip_image_markup,
)
from core.log_config import logger
from core.models import GenerationRequest, ImageRef, ModelCard, ModelList, ResponseFormat
from core.orchestrator import GenerationOrchestrator, SeedSource, random_seed
from core.params import map_parameters, requested_count
from core.render import (
    build_chat_completion,
    build_images_response,
    render_image_items,
    render_markdown,
)


class ImageUpstream(Protocol):
    async def generate(self, payload: Dict[str, Any]) -> Dict[str, Any]: ...

    async def fetch_image(self, url: str) -> bytes: ...


def _require_model(body: Dict[str, Any]) -> str:
    model = body.get("model")
    if not model or not str(model).strip():
        raise InvalidRequestError("model is required")
    return str(model)


class ImageProxyHandler:
    def __init__(
        self,
        config: ProxyConfig,
        upstream: ImageUpstream,
        seed_source: Optional[SeedSource] = None,
    ) -> None:
        self.config = config
        self.upstream = upstream
        self.orchestrator = GenerationOrchestrator(upstream.generate, seed_source or random_seed)

    def _check_edit_input(self, model: str, image: Optional[ImageRef]) -> None:
        if image is None and self.config.is_edit_model(model):
            raise InvalidRequestError(f"Model {model} requires an input image")

    async def generate(self, body: Dict[str, Any]) -> Dict[str, Any]:
        """POST /v1/images/generations"""
        if not isinstance(body, dict):
            body = {}

        model = _require_model(body)
        prompt = body.get("prompt")
        if not prompt or not isinstance(prompt, str):
            raise InvalidRequestError("prompt is required (string)")

        image = extract_from_body(body)
        self._check_edit_input(model, image)

        request = GenerationRequest(model=model, prompt=prompt, image=image, params=map_parameters(body))
        n = requested_count(body)
        response_format = ResponseFormat.parse(body.get("response_format"))
        logger.info(f"images/generations model={model} n={n} format={response_format.value} image={image is not None}")

        urls = await self.orchestrator.run(request.to_payload(), n)
        items = await render_image_items(urls, response_format, self.upstream.fetch_image)
        return build_images_response(items)

    async def chat_complete(self, body: Dict[str, Any]) -> Dict[str, Any]:
        """POST /v1/chat/completions"""
        if not isinstance(body, dict):
            body = {}

        messages = body.get("messages")
        if not isinstance(messages, list) or not messages:
            raise InvalidRequestError("messages is required (array)")

        # 取“最新的 user”作为 prompt
        last_user = latest_message(messages, "user")
        raw_prompt = message_text(last_user.get("content") if last_user else None)
        # 只有图片的 user 消息：去掉图片后为空时保留原文作为 prompt
        prompt = strip_image_markup(raw_prompt) or raw_prompt.strip()
        if not prompt:
            raise InvalidRequestError("No user prompt found in messages")

        model = _require_model(body)
        image = extract_image_ref(messages, body, edit_model=self.config.is_edit_model(model))
        self._check_edit_input(model, image)

        request = GenerationRequest(model=model, prompt=prompt, image=image, params=map_parameters(body))
        n = requested_count(body)
        response_format = ResponseFormat.parse(body.get("response_format"))
        logger.info(f"chat/completions model={model} n={n} format={response_format.value} image={image is not None}")

        urls = await self.orchestrator.run(request.to_payload(), n)
        content = await render_markdown(urls, response_format, self.upstream.fetch_image)
        return build_chat_completion(content, model, self.config.provider_label)

    def list_models(self) -> Dict[str, Any]:
        """GET /v1/models"""
        created = int(time())
        cards = [ModelCard(id=model_id, created=created) for model_id in configured_model_ids(self.config)]
        return ModelList(data=cards).model_dump()
