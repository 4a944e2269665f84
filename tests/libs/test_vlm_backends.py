"""Tests for the inference backend adapters."""

from unittest.mock import Mock, patch

import pytest
import requests

from screendiff.libs.vlm import (
    BACKEND_REGISTRY,
    ImageAttachment,
    VLMBackend,
    VLMBackendError,
    create_backend_client,
)
from screendiff.libs.vlm.backends import (
    AnthropicBackend,
    OpenAICompatibleBackend,
)

PNG = ImageAttachment(data=b"\x89PNG fake", media_type="image/png")


def _response(status=200, payload=None, text=""):
    response = Mock()
    response.status_code = status
    response.text = text
    response.json.return_value = payload
    return response


def test_registry_covers_every_backend():
    assert set(BACKEND_REGISTRY) == set(VLMBackend)
    assert BACKEND_REGISTRY[VLMBackend.VLLM] is OpenAICompatibleBackend
    assert BACKEND_REGISTRY[VLMBackend.LMDEPLOY] is OpenAICompatibleBackend


def test_create_backend_client_accepts_strings():
    client = create_backend_client(
        "anthropic", base_url="https://api.example.com/v1/", model_name="m", api_key="k"
    )

    assert isinstance(client, AnthropicBackend)
    assert client.base_url == "https://api.example.com/v1"
    assert client.session.headers["x-api-key"] == "k"
    assert client.session.headers["anthropic-version"] == "2023-06-01"


def test_unknown_backend_is_rejected():
    with pytest.raises(ValueError, match="Unsupported VLM backend"):
        create_backend_client("triton", base_url="http://x", model_name="m")


def test_anthropic_payload_embeds_base64_images():
    client = AnthropicBackend(base_url="http://x", model_name="claude", api_key="k")

    payload = client.build_payload(
        prompt="compare", images=[PNG, PNG], max_tokens=100, temperature=0.0
    )

    content = payload["messages"][0]["content"]
    assert payload["model"] == "claude" and payload["max_tokens"] == 100
    assert content[0] == {"type": "text", "text": "compare"}
    assert [block["type"] for block in content[1:]] == ["image", "image"]
    assert content[1]["source"] == {
        "type": "base64",
        "media_type": "image/png",
        "data": PNG.as_base64(),
    }


def test_openai_payload_uses_data_urls():
    client = OpenAICompatibleBackend(base_url="http://x", model_name="qwen", api_key="k")

    payload = client.build_payload(
        prompt="compare", images=[PNG], max_tokens=50, temperature=0.1
    )

    image_block = payload["messages"][0]["content"][1]
    assert image_block["image_url"]["url"].startswith("data:image/png;base64,")
    assert client.session.headers["Authorization"] == "Bearer k"


def test_anthropic_generate_joins_text_blocks():
    client = AnthropicBackend(base_url="http://x/v1", model_name="claude")
    reply = {
        "content": [
            {"type": "text", "text": "part one "},
            {"type": "tool_use", "name": "ignored"},
            {"type": "text", "text": "part two"},
        ]
    }

    with patch.object(client.session, "post", return_value=_response(payload=reply)) as post:
        text = client.generate(prompt="compare", images=[PNG])

    assert text == "part one part two"
    assert post.call_args.args[0] == "http://x/v1/messages"


@patch("requests.Session.post")
def test_openai_generate_reads_first_choice(mock_post):
    mock_post.return_value = _response(
        payload={"choices": [{"message": {"content": "  the reply  "}}]}
    )
    client = OpenAICompatibleBackend(base_url="http://x/v1", model_name="m")

    assert client.generate(prompt="p") == "the reply"
    assert mock_post.call_args.args[0] == "http://x/v1/chat/completions"


@pytest.mark.parametrize(
    "response",
    [
        _response(status=500, text="boom"),
        _response(payload={"choices": [{"message": {"content": ""}}]}),
    ],
)
def test_generate_failures_raise_backend_error(response):
    client = OpenAICompatibleBackend(base_url="http://x", model_name="m")

    with patch.object(client.session, "post", return_value=response):
        with pytest.raises(VLMBackendError):
            client.generate(prompt="p")


def test_generate_wraps_transport_errors():
    client = AnthropicBackend(base_url="http://x", model_name="m")
    error = requests.ConnectionError("refused")

    with patch.object(client.session, "post", side_effect=error):
        with pytest.raises(VLMBackendError, match="refused"):
            client.generate(prompt="p")

    assert client.last_error == "refused"


def test_invalid_json_raises_backend_error():
    client = AnthropicBackend(base_url="http://x", model_name="m")
    response = _response()
    response.json.side_effect = ValueError("not json")

    with patch.object(client.session, "post", return_value=response):
        with pytest.raises(VLMBackendError, match="not valid JSON"):
            client.generate(prompt="p")
