import os
import sys
import base64
import itertools

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from core.config import ProxyConfig
from core.error_response import InvalidRequestError, UpstreamError
from core.handler import ImageProxyHandler

IMAGE_BYTES = b"\x89PNG\r\n\x1a\nfake-png-payload"


class FakeUpstream:
    def __init__(self, images_per_call=1):
        self.calls = []
        self.fetched = []
        self.images_per_call = images_per_call

    async def generate(self, payload):
        self.calls.append(payload)
        index = len(self.calls)
        return {"images": [{"url": f"https://cdn.example.com/u{index}-{i}.png"} for i in range(self.images_per_call)]}

    async def fetch_image(self, url):
        self.fetched.append(url)
        return IMAGE_BYTES


def make_handler(upstream=None, **config):
    upstream = upstream or FakeUpstream()
    seeds = itertools.count(1000)
    handler = ImageProxyHandler(ProxyConfig(**config), upstream, seed_source=lambda: next(seeds))
    return handler, upstream


# ----------------------------- /v1/images/generations -----------------------------


@pytest.mark.asyncio
async def test_generate_two_images_with_distinct_seeds():
    """n=2：两次顺序调用，seed 各不相同，按调用顺序返回。"""
    handler, upstream = make_handler()

    response = await handler.generate({"model": "Qwen/Qwen-Image", "prompt": "a cat", "n": 2})

    assert len(upstream.calls) == 2
    assert upstream.calls[0]["seed"] != upstream.calls[1]["seed"]
    assert upstream.calls[0] == {"model": "Qwen/Qwen-Image", "prompt": "a cat", "seed": 1000}
    assert isinstance(response["created"], int)
    assert response["data"] == [
        {"url": "https://cdn.example.com/u1-0.png"},
        {"url": "https://cdn.example.com/u2-0.png"},
    ]


@pytest.mark.asyncio
async def test_generate_maps_parameters_into_payload():
    handler, upstream = make_handler()

    await handler.generate({
        "model": "black-forest-labs/FLUX.1-dev",
        "prompt": "a cat",
        "size": "1024x1024",
        "sf_num_steps": 20,
        "num_inference_steps": 30,
        "sf_negative_prompt": "blurry",
        "sf_seed": 7,
        "quality": "hd",
    })

    assert upstream.calls == [{
        "model": "black-forest-labs/FLUX.1-dev",
        "prompt": "a cat",
        "image_size": "1024x1024",
        "num_inference_steps": 30,
        "negative_prompt": "blurry",
        "seed": 7,
    }]


@pytest.mark.asyncio
async def test_generate_batch_returns_all_upstream_images():
    handler, upstream = make_handler(FakeUpstream(images_per_call=3))

    response = await handler.generate({"model": "Kwai-Kolors/Kolors", "prompt": "p", "sf_batch_size": 3})

    assert len(upstream.calls) == 1
    assert "seed" not in upstream.calls[0]
    assert len(response["data"]) == 3


@pytest.mark.asyncio
async def test_generate_b64_json_decodes_to_fetched_bytes():
    handler, upstream = make_handler()

    response = await handler.generate({"model": "m", "prompt": "p", "response_format": "b64_json"})

    assert upstream.fetched == ["https://cdn.example.com/u1-0.png"]
    assert list(response["data"][0]) == ["b64_json"]
    assert base64.b64decode(response["data"][0]["b64_json"]) == IMAGE_BYTES


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body, message",
    [
        ({"prompt": "a cat"}, "model is required"),
        ({"model": "", "prompt": "a cat"}, "model is required"),
        ({"model": "m"}, "prompt is required (string)"),
        ({"model": "m", "prompt": ""}, "prompt is required (string)"),
        ({"model": "m", "prompt": ["a", "cat"]}, "prompt is required (string)"),
    ],
)
async def test_generate_validation_errors(body, message):
    handler, upstream = make_handler()

    with pytest.raises(InvalidRequestError) as exc_info:
        await handler.generate(body)

    assert exc_info.value.message == message
    assert exc_info.value.status_code == 400
    assert exc_info.value.error_type == "invalid_request_error"
    assert upstream.calls == []


@pytest.mark.asyncio
async def test_generate_edit_model_requires_image():
    handler, upstream = make_handler()

    with pytest.raises(InvalidRequestError, match="requires an input image"):
        await handler.generate({"model": "Qwen/Qwen-Image-Edit", "prompt": "make it blue"})
    assert upstream.calls == []


@pytest.mark.asyncio
async def test_generate_edit_model_with_body_image():
    handler, upstream = make_handler()

    await handler.generate({
        "model": "Qwen/Qwen-Image-Edit-2509",
        "prompt": "make it blue",
        "image_url": {"url": "https://example.com/in.png"},
    })

    assert upstream.calls[0]["image"] == "https://example.com/in.png"


# ----------------------------- /v1/chat/completions -----------------------------


@pytest.mark.asyncio
async def test_chat_single_image_markdown():
    handler, upstream = make_handler()

    response = await handler.chat_complete({
        "model": "Qwen/Qwen-Image",
        "messages": [{"role": "user", "content": "draw a cat"}],
        "n": 1,
    })

    assert len(upstream.calls) == 1
    assert upstream.calls[0]["prompt"] == "draw a cat"
    assert "image" not in upstream.calls[0]
    assert response["choices"][0]["message"]["content"] == "![image](https://cdn.example.com/u1-0.png)"
    assert response["model"] == "Qwen/Qwen-Image"
    assert response["provider"] == "SiliconFlow"
    assert response["usage"]["total_tokens"] == 0


@pytest.mark.asyncio
async def test_chat_uses_latest_user_message_and_custom_provider_label():
    handler, upstream = make_handler(provider_label="MyFlow")

    response = await handler.chat_complete({
        "model": "m",
        "messages": [
            {"role": "system", "content": "you draw"},
            {"role": "user", "content": "a dog"},
            {"role": "assistant", "content": "![image](https://cdn.example.com/old.png)"},
            {"role": "user", "content": [{"type": "text", "text": "a red fox"}]},
        ],
        "n": 2,
    })

    assert [c["prompt"] for c in upstream.calls] == ["a red fox", "a red fox"]
    assert all("image" not in c for c in upstream.calls)
    assert response["provider"] == "MyFlow"
    assert response["choices"][0]["message"]["content"] == (
        "![image](https://cdn.example.com/u1-0.png)\n\n![image](https://cdn.example.com/u2-0.png)"
    )


@pytest.mark.asyncio
async def test_chat_edit_model_uses_prior_assistant_image():
    handler, upstream = make_handler()

    await handler.chat_complete({
        "model": "Qwen/Qwen-Image-Edit",
        "messages": [
            {"role": "user", "content": "draw a cat"},
            {"role": "assistant", "content": "![x](https://example.com/b.png)"},
            {"role": "user", "content": "give it a hat"},
        ],
    })

    assert upstream.calls[0]["image"] == "https://example.com/b.png"
    assert upstream.calls[0]["prompt"] == "give it a hat"


@pytest.mark.asyncio
async def test_chat_user_image_is_stripped_from_prompt():
    handler, upstream = make_handler()

    await handler.chat_complete({
        "model": "Qwen/Qwen-Image-Edit",
        "messages": [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": "make it blue"},
                    {"type": "image_url", "image_url": {"url": "data:image/png;base64,AAAA"}},
                ],
            }
        ],
    })

    assert upstream.calls[0]["image"] == "data:image/png;base64,AAAA"
    assert upstream.calls[0]["prompt"] == "make it blue"


@pytest.mark.asyncio
async def test_chat_image_only_user_turn_keeps_raw_text_as_prompt():
    """user 消息只有一张图时，原文作为 prompt，图片作为编辑输入。"""
    handler, upstream = make_handler()

    await handler.chat_complete({
        "model": "Qwen/Qwen-Image-Edit",
        "messages": [{"role": "user", "content": "![x](https://e.com/a.png)"}],
    })

    assert upstream.calls[0]["image"] == "https://e.com/a.png"
    assert upstream.calls[0]["prompt"] == "![x](https://e.com/a.png)"


@pytest.mark.asyncio
async def test_chat_edit_model_without_any_image_is_rejected():
    handler, upstream = make_handler()

    with pytest.raises(InvalidRequestError, match="requires an input image"):
        await handler.chat_complete({
            "model": "Qwen/Qwen-Image-Edit",
            "messages": [{"role": "user", "content": "give it a hat"}],
        })
    assert upstream.calls == []


@pytest.mark.asyncio
async def test_chat_b64_json_renders_data_uri_markdown():
    handler, upstream = make_handler()

    response = await handler.chat_complete({
        "model": "m",
        "messages": [{"role": "user", "content": "draw"}],
        "response_format": "b64_json",
    })

    encoded = base64.b64encode(IMAGE_BYTES).decode("ascii")
    assert response["choices"][0]["message"]["content"] == f"![image](data:image/png;base64,{encoded})"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body, message",
    [
        ({"model": "m"}, "messages is required (array)"),
        ({"model": "m", "messages": []}, "messages is required (array)"),
        ({"model": "m", "messages": "draw a cat"}, "messages is required (array)"),
        ({"model": "m", "messages": [{"role": "system", "content": "x"}]}, "No user prompt found in messages"),
        ({"model": "m", "messages": [{"role": "user", "content": ""}]}, "No user prompt found in messages"),
        ({"messages": [{"role": "user", "content": "draw"}]}, "model is required"),
    ],
)
async def test_chat_validation_errors(body, message):
    handler, upstream = make_handler()

    with pytest.raises(InvalidRequestError) as exc_info:
        await handler.chat_complete(body)

    assert exc_info.value.message == message
    assert upstream.calls == []


@pytest.mark.asyncio
async def test_chat_missing_image_in_sequential_call_fails_request():
    class EmptyUpstream(FakeUpstream):
        async def generate(self, payload):
            self.calls.append(payload)
            return {"images": []}

    handler, _ = make_handler(EmptyUpstream())

    with pytest.raises(UpstreamError):
        await handler.chat_complete({"model": "m", "messages": [{"role": "user", "content": "draw"}]})


# ----------------------------- /v1/models -----------------------------


def test_list_models_from_json_and_plain_list():
    handler, _ = make_handler(models_json='["a/b", {"id": "c"}, {"name": "d"}, {"model": "e"}, {}]')
    ids = [m["id"] for m in handler.list_models()["data"]]
    assert ids == ["a/b", "c", "d", "e", "unknown"]

    handler, _ = make_handler(models="x, y\nz")
    response = handler.list_models()
    assert response["object"] == "list"
    assert [m["id"] for m in response["data"]] == ["x", "y", "z"]
    assert all(m["object"] == "model" and m["owned_by"] == "system" for m in response["data"])


def test_models_json_takes_precedence():
    handler, _ = make_handler(models_json='["from-json"]', models="from-list")
    assert [m["id"] for m in handler.list_models()["data"]] == ["from-json"]


def test_list_models_empty_when_unconfigured():
    handler, _ = make_handler()
    assert handler.list_models() == {"object": "list", "data": []}


@pytest.mark.parametrize("raw", ["not json", '{"id": "a"}'])
def test_invalid_models_json(raw):
    handler, _ = make_handler(models_json=raw)
    with pytest.raises(InvalidRequestError, match="Invalid MODELS_JSON"):
        handler.list_models()


def test_numeric_and_object_model_ids_are_listed_as_strings():
    handler, _ = make_handler(
        models_json='[{"id": 5}, {"name": 7.5}, {"id": "", "model": "m"}, {"id": {"nested": 1}}, {"id": true}, 42]'
    )
    ids = [m["id"] for m in handler.list_models()["data"]]
    assert ids == ["5", "7.5", "m", "unknown", "unknown", "unknown"]
