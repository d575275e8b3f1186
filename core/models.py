"""
数据模型

请求级的临时对象：输入图片引用、生成请求、以及两种 OpenAI 兼容响应结构。
"""

import re
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ImageRefKind(str, Enum):
    URL = "url"
    DATA_URI = "data_uri"


URL_VALUE_PATTERN = re.compile(r"^https?://\S+$", re.IGNORECASE)
DATA_URI_VALUE_PATTERN = re.compile(r"^data:image/[A-Za-z0-9.+-]+;base64,.+$", re.DOTALL)


class ImageRef(BaseModel):
    """已校验的图片引用：http(s) URL 或 data:image/...;base64,... 之一。"""

    model_config = ConfigDict(frozen=True)

    kind: ImageRefKind
    value: str

    @model_validator(mode="after")
    def check_value_matches_kind(self) -> "ImageRef":
        pattern = URL_VALUE_PATTERN if self.kind is ImageRefKind.URL else DATA_URI_VALUE_PATTERN
        if not pattern.match(self.value):
            raise ValueError(f"value is not a valid {self.kind.value} image reference")
        return self


class ResponseFormat(str, Enum):
    URL = "url"
    B64_JSON = "b64_json"

    @classmethod
    def parse(cls, raw: Any) -> "ResponseFormat":
        # 只有字符串 "b64_json" 会触发取图编码，其余（包括 chat 客户端传的 {"type": "text"}）都按 url 处理
        if raw == cls.B64_JSON.value:
            return cls.B64_JSON
        return cls.URL


class GenerationRequest(BaseModel):
    """构造后不可变；params 为 ParameterMapper 的输出。"""

    model_config = ConfigDict(frozen=True)

    model: str = Field(..., min_length=1)
    prompt: str = Field(..., min_length=1)
    image: Optional[ImageRef] = None
    params: Dict[str, Any] = Field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        """构建上游 payload 模板（不含自动注入的 seed）。"""
        payload: Dict[str, Any] = {"model": self.model, "prompt": self.prompt}
        if self.image is not None:
            payload["image"] = self.image.value
        payload.update(self.params)
        return payload


class ImageData(BaseModel):
    url: Optional[str] = None
    b64_json: Optional[str] = None


class ImagesResponse(BaseModel):
    created: int
    data: List[ImageData]


class ChatMessageOut(BaseModel):
    role: Literal["assistant"] = "assistant"
    content: str
    refusal: Optional[str] = None
    reasoning: Optional[str] = None


class ChatChoice(BaseModel):
    logprobs: Optional[Any] = None
    finish_reason: str = "stop"
    native_finish_reason: str = "stop"
    index: int = 0
    message: ChatMessageOut


class Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    prompt_tokens_details: Optional[Dict[str, Any]] = None


class ChatCompletionResponse(BaseModel):
    id: str
    provider: str
    model: str
    object: Literal["chat.completion"] = "chat.completion"
    created: int
    choices: List[ChatChoice]
    usage: Usage = Field(default_factory=Usage)


class ModelCard(BaseModel):
    id: str
    object: Literal["model"] = "model"
    created: int
    owned_by: str = "system"


class ModelList(BaseModel):
    object: Literal["list"] = "list"
    data: List[ModelCard] = Field(default_factory=list)
