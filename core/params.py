"""
参数映射

OpenAI 风格字段 / 代理自定义 sf_* 字段 -> SiliconFlow payload 字段。
"""

import re
from typing import Any, Dict, Tuple

# (目标字段, 按顺序读取的来源字段)。后面的来源会覆盖前面的，因此两者同时给出时规范字段名生效。
PARAMETER_RULES: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("negative_prompt", ("sf_negative_prompt", "negative_prompt")),
    ("num_inference_steps", ("sf_num_steps", "num_inference_steps")),
    ("guidance_scale", ("sf_guidance_scale", "guidance_scale")),
    ("cfg", ("sf_cfg", "cfg")),
    ("seed", ("sf_seed", "seed")),
    ("batch_size", ("sf_batch_size",)),
)

# image_size：代理字段优先于 OpenAI 的 size，只接受非空字符串
IMAGE_SIZE_SOURCES: Tuple[str, ...] = ("sf_image_size", "size")

MIN_IMAGES = 1
MAX_IMAGES = 10

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def map_parameters(body: Dict[str, Any]) -> Dict[str, Any]:
    """只复制请求中实际给出的字段；缺失（或为 null）的字段不出现在结果中。"""
    if not isinstance(body, dict):
        return {}

    mapped: Dict[str, Any] = {}

    for source in IMAGE_SIZE_SOURCES:
        value = body.get(source)
        if isinstance(value, str) and value:
            mapped["image_size"] = value
            break

    for destination, sources in PARAMETER_RULES:
        for source in sources:
            if body.get(source) is not None:
                mapped[destination] = body[source]

    return mapped


def clamp_int(value: Any, lo: int, hi: int) -> int:
    """按 parseInt 语义取整数（"3.7" -> 3，"abc" -> lo），再夹到 [lo, hi]。"""
    if isinstance(value, bool):
        return lo
    if isinstance(value, float):
        value = int(value) if value == value and abs(value) != float("inf") else None
    match = _LEADING_INT.match(str(value)) if value is not None else None
    if not match:
        return lo
    return max(lo, min(hi, int(match.group(1))))


def requested_count(body: Dict[str, Any]) -> int:
    """n：缺省 1，越界取最近边界，非数字按 1。"""
    raw = body.get("n") if isinstance(body, dict) else None
    if raw is None:
        return MIN_IMAGES
    return clamp_int(raw, MIN_IMAGES, MAX_IMAGES)
