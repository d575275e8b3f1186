"""
输入图片引用提取

从客户端各种形态的输入里找出“第一张”可用图片（http(s) URL 或 data:image URI）：
- 纯文本 / Markdown 图片 / data URI / 裸 URL
- OpenAI 风格 content 数组（image_url / input_image / 通用对象）
- 请求体顶层字段（image / image_url / images / image_urls）
- 编辑类模型：上一轮 assistant 输出的图片

所有匹配规则都以有序元组给出，先匹配者优先；只取第一张图（多图消息只用第一张）。
"""

import re
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from core.models import DATA_URI_VALUE_PATTERN, URL_VALUE_PATTERN, ImageRef, ImageRefKind

DATA_URI_PATTERN = re.compile(r"data:image/[A-Za-z0-9.+-]+;base64,[A-Za-z0-9+/=_-]+")
MARKDOWN_IMAGE_PATTERN = re.compile(r"!\[[^\]]*\]\((https?://[^\s)]+)", re.IGNORECASE)
BARE_URL_PATTERN = re.compile(r"https?://[^\s<>\"'()\[\]]+", re.IGNORECASE)

_MARKDOWN_ANY_IMAGE = re.compile(r"!\[[^\]]*\]\((?:https?://|data:image/)[^)]*\)", re.IGNORECASE)
_URL_TRAILING_PUNCTUATION = ".,;:!?"

# 纯文本扫描顺序：(名称, 正则, 取值分组)
TEXT_PATTERNS: Tuple[Tuple[str, "re.Pattern[str]", int], ...] = (
    ("data_uri", DATA_URI_PATTERN, 0),
    ("markdown_image", MARKDOWN_IMAGE_PATTERN, 1),
    ("bare_url", BARE_URL_PATTERN, 0),
)

INPUT_IMAGE_KEYS = ("image_url", "url", "image")
GENERIC_IMAGE_KEYS = ("url", "image", "src", "data", "href")

# 请求体顶层字段：(字段名, 是否为列表字段)
BODY_FIELDS: Tuple[Tuple[str, bool], ...] = (
    ("image", False),
    ("image_url", False),
    ("images", True),
    ("image_urls", True),
)


def coerce_image_ref(candidate: Any) -> Optional[ImageRef]:
    """字符串或带 url 字段的对象 -> ImageRef；不认识的一律返回 None，不做替换。"""
    if isinstance(candidate, dict):
        candidate = candidate.get("url")
    if not isinstance(candidate, str):
        return None

    value = candidate.strip()
    if DATA_URI_VALUE_PATTERN.match(value):
        return ImageRef(kind=ImageRefKind.DATA_URI, value=value)
    if URL_VALUE_PATTERN.match(value):
        return ImageRef(kind=ImageRefKind.URL, value=value)
    return None


def _first_coercible(candidates: Iterable[Any]) -> Optional[ImageRef]:
    for candidate in candidates:
        ref = coerce_image_ref(candidate)
        if ref is not None:
            return ref
    return None


def extract_from_text(text: str) -> Optional[ImageRef]:
    """按 data URI -> Markdown 图片 -> 裸 URL 的顺序扫描文本。"""
    if not isinstance(text, str) or not text:
        return None

    for name, pattern, group in TEXT_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        value = match.group(group)
        if name == "bare_url":
            value = value.rstrip(_URL_TRAILING_PUNCTUATION)
        ref = coerce_image_ref(value)
        if ref is not None:
            return ref
    return None


def _from_image_url_part(part: Dict[str, Any]) -> Optional[ImageRef]:
    if part.get("type") != "image_url":
        return None
    return coerce_image_ref(part.get("image_url"))


def _from_input_image_part(part: Dict[str, Any]) -> Optional[ImageRef]:
    if part.get("type") != "input_image":
        return None
    return _first_coercible(part.get(key) for key in INPUT_IMAGE_KEYS)


def _from_text_part(part: Dict[str, Any]) -> Optional[ImageRef]:
    if part.get("type") != "text":
        return None
    return extract_from_text(part.get("text"))


def _from_generic_part(part: Dict[str, Any]) -> Optional[ImageRef]:
    return _first_coercible(part.get(key) for key in GENERIC_IMAGE_KEYS)


# content 数组中单个元素的匹配顺序
PART_RULES: Tuple[Tuple[str, Callable[[Dict[str, Any]], Optional[ImageRef]]], ...] = (
    ("image_url", _from_image_url_part),
    ("input_image", _from_input_image_part),
    ("text", _from_text_part),
    ("generic", _from_generic_part),
)


def extract_from_part(part: Any) -> Optional[ImageRef]:
    if isinstance(part, str):
        return extract_from_text(part)
    if not isinstance(part, dict):
        return None
    for _, rule in PART_RULES:
        ref = rule(part)
        if ref is not None:
            return ref
    return None


def extract_from_message(message: Any) -> Optional[ImageRef]:
    """从单条消息中取第一张图。"""
    if not isinstance(message, dict):
        return None

    content = message.get("content")
    if isinstance(content, str):
        return extract_from_text(content)
    if isinstance(content, dict):
        content = [content]
    if isinstance(content, list):
        for part in content:
            ref = extract_from_part(part)
            if ref is not None:
                return ref
    return None


def extract_from_body(body: Any) -> Optional[ImageRef]:
    """请求体顶层的 image / image_url / images[] / image_urls[]。"""
    if not isinstance(body, dict):
        return None

    for field_name, is_list in BODY_FIELDS:
        value = body.get(field_name)
        if value is None:
            continue
        if is_list and isinstance(value, list):
            ref = _first_coercible(value)
        else:
            ref = coerce_image_ref(value)
        if ref is not None:
            return ref
    return None


def latest_message(messages: Any, role: str) -> Optional[Dict[str, Any]]:
    """倒序查找指定角色的最新一条消息。"""
    if not isinstance(messages, list):
        return None
    for message in reversed(messages):
        if isinstance(message, dict) and message.get("role") == role:
            return message
    return None


def extract_image_ref(
    messages: Optional[List[Any]],
    body: Optional[Dict[str, Any]] = None,
    edit_model: bool = False,
) -> Optional[ImageRef]:
    """
    按优先级提取输入图片：

    1. 最新的 user 消息
    2. 请求体顶层图片字段
    3. 编辑类模型：最新的 assistant 消息（多轮改图）
    4. 都没有则返回 None
    """
    ref = extract_from_message(latest_message(messages, "user"))
    if ref is not None:
        return ref

    ref = extract_from_body(body)
    if ref is not None:
        return ref

    if edit_model:
        return extract_from_message(latest_message(messages, "assistant"))
    return None


def message_text(content: Any) -> str:
    """把消息 content 拍平为纯文本（用作 prompt）。"""
    if not content:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        texts = []
        for part in content:
            if isinstance(part, str):
                texts.append(part)
            elif isinstance(part, dict) and isinstance(part.get("text"), str):
                texts.append(part["text"])
        return "\n".join(text for text in texts if text)
    if isinstance(content, dict) and content.get("text"):
        return str(content["text"])
    return ""


def strip_image_markup(text: str) -> str:
    """去掉文本中的 Markdown 图片和 data URI，避免把图片本身当成 prompt 发给上游。"""
    text = _MARKDOWN_ANY_IMAGE.sub("", text or "")
    text = DATA_URI_PATTERN.sub("", text)
    return text.strip()
