import io
import json

import pytest
import requests
from botocore.exceptions import ClientError
from unittest.mock import MagicMock, patch

from cv_screener.models.settings import InferenceSettings, ProviderType
from cv_screener.services.inference import (
    ANTHROPIC_VERSION, BedrockGateway, OllamaGateway, build_gateway,
)
from cv_screener.utils.exceptions import InferenceError


def bedrock_response(body: dict) -> dict:
    return {"body": io.BytesIO(json.dumps(body).encode())}


class TestBedrockGateway:

    def test_generate_returns_first_text_block(self):
        client = MagicMock()
        client.invoke_model.return_value = bedrock_response({"content": [{"type": "text", "text": "{\"a\": 1}"}]})
        gw = BedrockGateway(InferenceSettings(max_tokens=4000), client=client)

        assert gw.generate("PROMPT") == "{\"a\": 1}"

        kwargs = client.invoke_model.call_args.kwargs
        assert kwargs["modelId"] == "anthropic.claude-3-haiku-20240307-v1:0"
        payload = json.loads(kwargs["body"])
        assert payload["anthropic_version"] == ANTHROPIC_VERSION
        assert payload["max_tokens"] == 4000
        assert payload["messages"][0]["content"][0]["text"] == "PROMPT"

    def test_client_error_exposes_message(self):
        client = MagicMock()
        client.invoke_model.side_effect = ClientError(
            {"Error": {"Code": "AccessDeniedException", "Message": "not authorized"}}, "InvokeModel"
        )
        gw = BedrockGateway(InferenceSettings(), client=client)

        with pytest.raises(InferenceError) as exc_info:
            gw.generate("PROMPT")
        assert "not authorized" in exc_info.value.message
        assert exc_info.value.details["provider"] == "bedrock"

    def test_empty_content(self):
        client = MagicMock()
        client.invoke_model.return_value = bedrock_response({"content": [], "stop_reason": "max_tokens"})
        with pytest.raises(InferenceError):
            BedrockGateway(InferenceSettings(), client=client).generate("PROMPT")

    @patch("cv_screener.services.inference.boto3")
    def test_static_credentials_are_injected(self, mock_boto3):
        settings = InferenceSettings(region="eu-west-1", access_key_id="AKIA", secret_access_key="secret")
        BedrockGateway(settings)
        mock_boto3.client.assert_called_once_with(
            "bedrock-runtime", region_name="eu-west-1",
            aws_access_key_id="AKIA", aws_secret_access_key="secret",
        )

    @patch("cv_screener.services.inference.boto3")
    def test_partial_credentials_use_default_chain(self, mock_boto3):
        BedrockGateway(InferenceSettings(access_key_id="AKIA"))
        mock_boto3.client.assert_called_once_with("bedrock-runtime", region_name="us-east-1")


class TestOllamaGateway:

    def test_generate(self):
        session = MagicMock()
        session.post.return_value.json.return_value = {"response": "hello"}
        settings = InferenceSettings(provider=ProviderType.OLLAMA, model_id="llama3", base_url="http://ollama:11434/")
        gw = OllamaGateway(settings, session=session)

        assert gw.generate("PROMPT") == "hello"
        url = session.post.call_args.args[0]
        body = session.post.call_args.kwargs["json"]
        assert url == "http://ollama:11434/api/generate"
        assert body["model"] == "llama3"
        assert body["stream"] is False

    def test_http_error(self):
        session = MagicMock()
        session.post.side_effect = requests.ConnectionError("connection refused")
        gw = OllamaGateway(InferenceSettings(provider=ProviderType.OLLAMA), session=session)

        with pytest.raises(InferenceError) as exc_info:
            gw.generate("PROMPT")
        assert "connection refused" in exc_info.value.message


@patch("cv_screener.services.inference.boto3")
def test_build_gateway(mock_boto3):
    assert isinstance(build_gateway(InferenceSettings()), BedrockGateway)
    assert isinstance(build_gateway(InferenceSettings(provider="ollama")), OllamaGateway)


@patch("cv_screener.services.inference.PerformanceMonitor")
def test_slow_completion_threshold_is_half_the_timeout(mock_monitor):
    client = MagicMock()
    client.invoke_model.return_value = bedrock_response({"content": [{"type": "text", "text": "ok"}]})
    gw = BedrockGateway(InferenceSettings(timeout=60), client=client)

    gw.generate("PROMPT")

    assert gw.slow_threshold_ms == 30000
    assert mock_monitor.call_args.kwargs["threshold_ms"] == 30000
