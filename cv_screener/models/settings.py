"""
Settings Models for Screener Configuration
"""
import os
from enum import Enum
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ProviderType(str, Enum):
    """Available inference providers"""
    BEDROCK = "bedrock"
    OLLAMA = "ollama"


class MatcherType(str, Enum):
    """Available skill name matching strategies"""
    SUBSTRING = "substring"
    EXACT = "exact"
    TOKEN = "token"


class InferenceSettings(BaseModel):
    """LLM Configuration Settings"""
    model_config = ConfigDict(protected_namespaces=())

    provider: ProviderType = Field(default=ProviderType.BEDROCK, description="Inference backend")
    model_id: str = Field(default="anthropic.claude-3-haiku-20240307-v1:0", description="Hosted model identifier")
    region: str = Field(default="us-east-1", description="Region of the hosted endpoint")
    access_key_id: Optional[str] = Field(default=None, description="Access key id for the hosted endpoint")
    secret_access_key: Optional[str] = Field(default=None, description="Secret access key for the hosted endpoint")
    base_url: str = Field(default="http://localhost:11434", description="Ollama base URL")
    temperature: float = Field(default=0.2, ge=0.0, le=2.0, description="Generation temperature")
    max_tokens: int = Field(default=4000, ge=1, description="Maximum tokens to generate")
    timeout: int = Field(default=120, ge=1, le=600, description="Request timeout in seconds")

    @property
    def has_static_credentials(self) -> bool:
        return bool(self.access_key_id and self.secret_access_key)


class ScoringThresholds(BaseModel):
    """Decision band lower bounds, inclusive"""
    recommend_min: int = Field(default=80, ge=0, le=100, description="Minimum score for RECOMMENDED")
    consider_min: int = Field(default=50, ge=0, le=100, description="Minimum score for CONSIDER")

    @model_validator(mode="after")
    def validate_thresholds(self):
        if self.consider_min > self.recommend_min:
            raise ValueError('consider_min must not exceed recommend_min')
        return self


class ProcessingSettings(BaseModel):
    """Processing and Performance Configuration"""
    max_concurrent: int = Field(default=1, ge=1, le=20, description="Maximum concurrent model calls in a batch")
    matcher: MatcherType = Field(default=MatcherType.SUBSTRING, description="Skill name matching strategy")


class ScreenerSettings(BaseModel):
    """Complete Screener Settings"""
    inference: InferenceSettings = Field(default_factory=InferenceSettings)
    scoring_thresholds: ScoringThresholds = Field(default_factory=ScoringThresholds)
    processing: ProcessingSettings = Field(default_factory=ProcessingSettings)

    @field_validator("inference")
    @classmethod
    def validate_inference(cls, v: InferenceSettings):
        if v.provider == ProviderType.OLLAMA and not v.base_url:
            raise ValueError('base_url is required for the ollama provider')
        return v

    @classmethod
    def from_env(cls) -> "ScreenerSettings":
        """Build settings from the process environment (and .env, if present)"""
        load_dotenv()
        provider = os.getenv("LLM_PROVIDER", ProviderType.BEDROCK.value).lower()
        if provider == ProviderType.OLLAMA.value:
            model_id = os.getenv("LLM_MODEL", "llama3")
        else:
            model_id = os.getenv("BEDROCK_MODEL_ID", InferenceSettings().model_id)
        return cls(
            inference=InferenceSettings(
                provider=provider,
                model_id=model_id,
                region=os.getenv("AWS_REGION", "us-east-1"),
                access_key_id=os.getenv("AMPLIFY_BEDROCK_ID") or None,
                secret_access_key=os.getenv("AMPLIFY_BEDROCK_SECRET") or None,
                base_url=os.getenv("OLLAMA_BASE_URL", "http://localhost:11434"),
                temperature=float(os.getenv("LLM_TEMPERATURE", "0.2")),
                max_tokens=int(os.getenv("LLM_MAX_TOKENS", "4000")),
                timeout=int(os.getenv("LLM_TIMEOUT", "120")),
            ),
            scoring_thresholds=ScoringThresholds(
                recommend_min=int(os.getenv("RECOMMEND_MIN", "80")),
                consider_min=int(os.getenv("CONSIDER_MIN", "50")),
            ),
            processing=ProcessingSettings(
                max_concurrent=int(os.getenv("MAX_CONCURRENT", "1")),
                matcher=os.getenv("SKILL_MATCHER", MatcherType.SUBSTRING.value).lower(),
            ),
        )
