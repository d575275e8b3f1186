"""
代理配置

进程级只读配置：上游密钥 / Base URL / provider 标签 / 代理访问密钥 / 模型清单。
由 load_config() 一次性读取后以 ProxyConfig 显式传入各处理器，处理器不直接读取环境变量。
"""

import re
import json
from dataclasses import dataclass, field
from typing import Any, List, Optional

from core.cf_env import get_setting
from core.env import split_list
from core.error_response import InvalidRequestError

DEFAULT_SF_BASE = "https://api.siliconflow.cn/v1"
DEFAULT_PROVIDER_LABEL = "SiliconFlow"
DEFAULT_EDIT_MODEL_PATTERN = r"(?i)(?:image-edit|kontext)"

# 代理访问密钥的环境变量（后三个为旧变量名，保持兼容）
CLIENT_KEY_VARIABLES = (
    "ALLOW_CLIENT_KEY",
    "ALLOW_CLIENT_KEYS",
    "ACCESS_TOKEN",
    "ACCESS_TOKENS",
    "ACCESS_KEYS",
)


@dataclass(frozen=True)
class ProxyConfig:
    upstream_key: Optional[str] = None
    sf_base: str = DEFAULT_SF_BASE
    provider_label: str = DEFAULT_PROVIDER_LABEL
    client_keys: frozenset = field(default_factory=frozenset)
    models_json: Optional[str] = None
    models: Optional[str] = None
    edit_model_pattern: str = DEFAULT_EDIT_MODEL_PATTERN

    @property
    def images_url(self) -> str:
        base = (self.sf_base or "").rstrip("/") or DEFAULT_SF_BASE
        return f"{base}/images/generations"

    @property
    def edit_model_regex(self) -> "re.Pattern[str]":
        return re.compile(self.edit_model_pattern)

    def is_edit_model(self, model: str) -> bool:
        return bool(self.edit_model_regex.search(model or ""))

    @property
    def auth_enabled(self) -> bool:
        return bool(self.client_keys)


def load_config() -> ProxyConfig:
    """从 Cloudflare env / 环境变量读取配置。"""
    client_keys = set()
    for name in CLIENT_KEY_VARIABLES:
        client_keys.update(split_list(get_setting(name)))

    edit_pattern = get_setting("EDIT_MODEL_PATTERN", DEFAULT_EDIT_MODEL_PATTERN)
    try:
        re.compile(edit_pattern)
    except re.error as e:
        raise ValueError(f"Invalid EDIT_MODEL_PATTERN: {e}") from e

    return ProxyConfig(
        upstream_key=get_setting("SILICONFLOW_API_KEY"),
        sf_base=get_setting("SF_BASE", DEFAULT_SF_BASE),
        provider_label=get_setting("PROVIDER_LABEL", DEFAULT_PROVIDER_LABEL),
        client_keys=frozenset(client_keys),
        models_json=get_setting("MODELS_JSON"),
        models=get_setting("MODELS"),
        edit_model_pattern=edit_pattern,
    )


def get_app_config(app) -> ProxyConfig:
    """取 app.state.config；Workers 环境下 lifespan 不一定执行，首次请求时再加载。"""
    config = getattr(app.state, "config", None)
    if config is None:
        config = load_config()
        app.state.config = config
    return config


def _model_id(item: Any) -> str:
    if isinstance(item, str):
        return item
    if isinstance(item, dict):
        value = item.get("id") or item.get("name") or item.get("model")
        # 数字 id 按字符串返回；对象/数组等非标量视为缺失
        if isinstance(value, (str, int, float)) and not isinstance(value, bool):
            return str(value)
    return "unknown"


def configured_model_ids(config: ProxyConfig) -> List[str]:
    """
    解析 /v1/models 的模型清单

    - 优先 MODELS_JSON：JSON 数组（字符串或 {id|name|model: "..."} 对象）
    - 次选 MODELS：逗号/空白分隔
    - 都未配置时返回空列表
    """
    if config.models_json:
        try:
            items = json.loads(config.models_json)
        except json.JSONDecodeError:
            items = None
        if not isinstance(items, list):
            raise InvalidRequestError("Invalid MODELS_JSON (must be JSON array)")
        return [_model_id(item) for item in items]

    return split_list(config.models)
