"""AWS Bedrock provider adapter.

The API key slot carries a JSON document with the AWS credentials, e.g.
``{"region": "us-east-1", "accessKeyId": "...", "secretAccessKey": "..."}``.
Models are discovered via the ListFoundationModels API.
Ref: https://docs.aws.amazon.com/bedrock/latest/APIReference/API_ListFoundationModels.html
"""

import asyncio
import json
import logging
from dataclasses import dataclass

import boto3
from botocore.config import Config

from llmkit.core.capabilities import detect_capabilities
from llmkit.exceptions import ConfigurationError
from llmkit.providers.base import BaseProvider, ProviderConfig, model
from llmkit.providers.handle import ModelHandle
from llmkit.types import CredentialContext, ModelDescriptor

logger = logging.getLogger(__name__)

DEFAULT_REGION = "us-east-1"
REGION_KEY = "AWS_REGION"


@dataclass(frozen=True)
class BedrockCredentials:
    region: str
    access_key_id: str
    secret_access_key: str
    session_token: str | None = None


class AmazonBedrockProvider(BaseProvider):
    name = "AmazonBedrock"
    get_api_key_link = "https://console.aws.amazon.com/iam/home"
    litellm_prefix = "bedrock/"

    config = ProviderConfig(api_token_key="AWS_BEDROCK_CONFIG")

    static_models = (
        model("anthropic.claude-3-5-sonnet-20241022-v2:0", "Claude 3.5 Sonnet v2 (Bedrock)", "AmazonBedrock", 8000,
              image_input=True, structured_output=True, code_diff=True),
        model("anthropic.claude-3-haiku-20240307-v1:0", "Claude 3 Haiku (Bedrock)", "AmazonBedrock", 4096,
              image_input=True),
        model("amazon.nova-pro-v1:0", "Amazon Nova Pro (Bedrock)", "AmazonBedrock", 5120, image_input=True),
        model("mistral.mistral-large-2402-v1:0", "Mistral Large 24.02 (Bedrock)", "AmazonBedrock", 8192),
    )

    def parse_credentials(self, context: CredentialContext | None) -> BedrockCredentials:
        """Parse the JSON credential document.

        Region precedence: provider settings, the document's ``region``,
        ``AWS_REGION``, then ``us-east-1``.

        Raises:
            ConfigurationError: Missing, malformed or incomplete configuration.
        """
        settings = self.provider_settings(context)
        _, raw = self.resolve_base_url_and_key(context)
        if not raw:
            raise ConfigurationError(f"Missing API key for {self.name} provider", provider=self.name)

        try:
            data = json.loads(raw)
        except ValueError as e:
            raise ConfigurationError(
                f"Invalid AWS Bedrock configuration format for {self.name}: expected JSON "
                "with region, accessKeyId and secretAccessKey",
                provider=self.name,
            ) from e

        if not isinstance(data, dict) or not data.get("accessKeyId") or not data.get("secretAccessKey"):
            raise ConfigurationError(
                f"Missing required AWS credentials (accessKeyId, secretAccessKey) for {self.name}",
                provider=self.name,
            )

        return BedrockCredentials(
            region=(settings.region if settings else None)
            or data.get("region")
            or self.env_value(REGION_KEY, context)
            or DEFAULT_REGION,
            access_key_id=data["accessKeyId"],
            secret_access_key=data["secretAccessKey"],
            session_token=data.get("sessionToken") or None,
        )

    def supports_discovery(self) -> bool:
        return True

    async def fetch_dynamic_models(self, context: CredentialContext) -> list[ModelDescriptor]:
        credentials = self.parse_credentials(context)
        timeout = self.settings.catalog_timeout

        config = Config(
            connect_timeout=timeout,
            read_timeout=timeout,
            retries={"max_attempts": 2},
        )

        # boto3 is synchronous - run in thread pool
        def _list_models() -> list[dict]:
            client = boto3.client(
                "bedrock",
                region_name=credentials.region,
                aws_access_key_id=credentials.access_key_id,
                aws_secret_access_key=credentials.secret_access_key,
                aws_session_token=credentials.session_token,
                config=config,
            )
            response = client.list_foundation_models()
            return response.get("modelSummaries", [])

        loop = asyncio.get_running_loop()
        model_summaries = await loop.run_in_executor(None, _list_models)

        static_ids = {m.name for m in self.static_models}
        models: list[ModelDescriptor] = []
        for model_data in model_summaries:
            model_id = model_data.get("modelId", "")
            if not model_id or model_id in static_ids:
                continue

            # Filter to only include models that support text generation
            if "TEXT" not in model_data.get("outputModalities", []):
                continue

            models.append(
                ModelDescriptor(
                    name=model_id,
                    label=f"{model_data.get('modelName') or model_id} (Bedrock)",
                    provider=self.name,
                    max_token_allowed=self.settings.default_max_tokens,
                    capabilities=detect_capabilities(model_id),
                )
            )

        logger.info(
            "Discovered %d text models from %s (region=%s)",
            len(models),
            self.name,
            credentials.region,
        )
        return models

    def get_model_instance(self, model: str, context: CredentialContext | None = None) -> ModelHandle:
        credentials = self.parse_credentials(context)

        extra_params = {
            "aws_access_key_id": credentials.access_key_id,
            "aws_secret_access_key": credentials.secret_access_key,
            "aws_region_name": credentials.region,
        }
        if credentials.session_token:
            extra_params["aws_session_token"] = credentials.session_token

        return self.build_handle(model, headers=self.extra_headers(context), extra_params=extra_params)
