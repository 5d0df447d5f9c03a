"""
Inference gateways: prompt in, completion text out.
"""
import json

import boto3
import requests
from botocore.exceptions import BotoCoreError, ClientError

from cv_screener.models.settings import InferenceSettings, ProviderType
from cv_screener.utils.exceptions import ConfigurationError, InferenceError
from cv_screener.utils.logging_config import PerformanceMonitor, get_logger

logger = get_logger(__name__)

ANTHROPIC_VERSION = "bedrock-2023-05-31"
# a completion taking longer than this share of the request timeout is logged as slow
SLOW_COMPLETION_FRACTION = 0.5


class InferenceGateway:
    """Opaque text-in/text-out model call. Errors surface as InferenceError."""

    provider = "base"

    def __init__(self, settings: InferenceSettings):
        self.settings = settings

    @property
    def slow_threshold_ms(self) -> float:
        return self.settings.timeout * 1000 * SLOW_COMPLETION_FRACTION

    def generate(self, prompt: str) -> str:
        with PerformanceMonitor(f"{self.provider} completion", logger, threshold_ms=self.slow_threshold_ms):
            return self._generate(prompt)

    def _generate(self, prompt: str) -> str:
        raise NotImplementedError

    def _error(self, message: str, cause: Exception = None) -> InferenceError:
        return InferenceError(message, provider=self.provider, model_id=self.settings.model_id, cause=cause)


class BedrockGateway(InferenceGateway):
    """Anthropic messages API on a hosted Bedrock runtime."""

    provider = ProviderType.BEDROCK.value

    def __init__(self, settings: InferenceSettings, client=None):
        super().__init__(settings)
        self.client = client or self._build_client(settings)

    @staticmethod
    def _build_client(settings: InferenceSettings):
        kwargs = {"region_name": settings.region}
        # fall back to the default credential chain unless both keys are set
        if settings.has_static_credentials:
            kwargs["aws_access_key_id"] = settings.access_key_id
            kwargs["aws_secret_access_key"] = settings.secret_access_key
        try:
            return boto3.client("bedrock-runtime", **kwargs)
        except (BotoCoreError, ValueError) as e:
            raise ConfigurationError(f"Could not create Bedrock client: {e}", config_key="AWS_REGION",
                                     config_value=settings.region, cause=e) from e

    def build_payload(self, prompt: str) -> dict:
        payload = {
            "anthropic_version": ANTHROPIC_VERSION,
            "max_tokens": self.settings.max_tokens,
            "temperature": self.settings.temperature,
            "messages": [
                {
                    "role": "user",
                    "content": [{"type": "text", "text": prompt}]
                }
            ]
        }
        return payload

    def _generate(self, prompt: str) -> str:
        try:
            response = self.client.invoke_model(
                modelId=self.settings.model_id,
                contentType="application/json",
                accept="application/json",
                body=json.dumps(self.build_payload(prompt)),
            )
            body = json.loads(response["body"].read())
        except (BotoCoreError, ClientError) as e:
            raise self._error(str(e), cause=e) from e
        except (KeyError, ValueError) as e:
            raise self._error(f"Unreadable Bedrock response: {e}", cause=e) from e

        content = body.get("content") or []
        if not content or "text" not in content[0]:
            raise self._error(f"Bedrock response has no text content (stop_reason={body.get('stop_reason')})")
        return content[0]["text"]


class OllamaGateway(InferenceGateway):
    """Local or self-hosted Ollama /api/generate endpoint."""

    provider = ProviderType.OLLAMA.value

    def __init__(self, settings: InferenceSettings, session: requests.Session = None):
        super().__init__(settings)
        self.session = session or requests.Session()

    def _generate(self, prompt: str) -> str:
        url = f"{self.settings.base_url.rstrip('/')}/api/generate"
        try:
            resp = self.session.post(
                url,
                json={
                    "model": self.settings.model_id,
                    "prompt": prompt,
                    "options": {
                        "temperature": self.settings.temperature,
                        "num_predict": self.settings.max_tokens,
                    },
                    "stream": False  # important
                },
                timeout=self.settings.timeout,
            )
            resp.raise_for_status()
            return resp.json().get("response", "") or ""
        except requests.RequestException as e:
            raise self._error(str(e), cause=e) from e
        except ValueError as e:
            raise self._error(f"Unreadable Ollama response: {e}", cause=e) from e


GATEWAYS = {
    ProviderType.BEDROCK: BedrockGateway,
    ProviderType.OLLAMA: OllamaGateway,
}


def build_gateway(settings: InferenceSettings) -> InferenceGateway:
    logger.info(f"Using {settings.provider.value} inference gateway with model {settings.model_id}")
    return GATEWAYS[settings.provider](settings)
