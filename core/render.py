"""
响应渲染

- /v1/images/generations: [{"url": ...}] 或 [{"b64_json": ...}]
- /v1/chat/completions: Markdown 图片（每张一段，空行分隔），包进 chat.completion 结构
"""

import base64
import random
import string
from time import time
from typing import Awaitable, Callable, Dict, List, Optional

from core.models import (
    ChatChoice,
    ChatCompletionResponse,
    ChatMessageOut,
    ImageData,
    ImagesResponse,
    ResponseFormat,
)

FetchFunc = Callable[[str], Awaitable[bytes]]

# 3 的整数倍，保证分块编码后直接拼接与整体编码结果一致
B64_CHUNK_SIZE = 0x8000 // 3 * 3

_ID_ALPHABET = string.ascii_letters + string.digits


def encode_base64(data: bytes, chunk_size: int = B64_CHUNK_SIZE) -> str:
    """分块 base64 编码，适用于任意大小的图片。"""
    if chunk_size <= 0 or chunk_size % 3:
        raise ValueError("chunk_size must be a positive multiple of 3")
    view = memoryview(data)
    return "".join(
        base64.b64encode(view[i:i + chunk_size]).decode("ascii")
        for i in range(0, len(view), chunk_size)
    )


def detect_image_mime(data: bytes) -> str:
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if data.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if data.startswith(b"RIFF") and data[8:12] == b"WEBP":
        return "image/webp"
    if data.startswith((b"GIF87a", b"GIF89a")):
        return "image/gif"
    return "image/png"


async def render_image_items(
    urls: List[str],
    response_format: ResponseFormat,
    fetch: Optional[FetchFunc] = None,
) -> List[ImageData]:
    if response_format is not ResponseFormat.B64_JSON:
        return [ImageData(url=url) for url in urls]

    items = []
    for url in urls:
        items.append(ImageData(b64_json=encode_base64(await fetch(url))))
    return items


async def render_markdown(
    urls: List[str],
    response_format: ResponseFormat,
    fetch: Optional[FetchFunc] = None,
) -> str:
    targets = []
    for url in urls:
        if response_format is ResponseFormat.B64_JSON:
            data = await fetch(url)
            targets.append(f"data:{detect_image_mime(data)};base64,{encode_base64(data)}")
        else:
            targets.append(url)
    return "\n\n".join(f"![image]({target})" for target in targets)


def build_images_response(items: List[ImageData], created: Optional[int] = None) -> Dict:
    response = ImagesResponse(created=created or int(time()), data=items)
    return response.model_dump(exclude_none=True)


def generate_completion_id(created: int, length: int = 20) -> str:
    random_str = "".join(random.choices(_ID_ALPHABET, k=length))
    return f"gen-{created}-{random_str}"


def build_chat_completion(content: str, model: str, provider: str, created: Optional[int] = None) -> Dict:
    """usage 全部为 0：本服务不做 token 计数。"""
    created = created or int(time())
    response = ChatCompletionResponse(
        id=generate_completion_id(created),
        provider=provider,
        model=model,
        created=created,
        choices=[ChatChoice(message=ChatMessageOut(content=content))],
    )
    return response.model_dump()
