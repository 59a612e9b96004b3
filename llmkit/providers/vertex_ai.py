"""Google Cloud Vertex AI provider adapter.

Authenticates with a service-account JSON document rather than an API key;
project and location are mandatory.
"""

import json
import logging

from llmkit.exceptions import ConfigurationError
from llmkit.providers.base import BaseProvider, ProviderConfig, model
from llmkit.providers.handle import ModelHandle
from llmkit.types import CredentialContext

logger = logging.getLogger(__name__)


class VertexAIProvider(BaseProvider):
    name = "Vertex AI"
    get_api_key_link = "https://cloud.google.com/vertex-ai/docs/start/set-up-environment"
    label_for_get_api_key = "Set up Vertex AI"
    litellm_prefix = "vertex_ai/"

    # The "API key" slot holds the stringified service-account JSON
    config = ProviderConfig(api_token_key="VERTEX_AI_SERVICE_ACCOUNT_JSON")
    project_id_key = "VERTEX_AI_PROJECT_ID"
    location_id_key = "VERTEX_AI_LOCATION_ID"

    static_models = (
        model("gemini-1.5-pro", "Gemini 1.5 Pro", "Vertex AI", 8192, image_input=True),
        model("gemini-1.5-flash", "Gemini 1.5 Flash", "Vertex AI", 8192, image_input=True),
        model("gemini-2.0-flash", "Gemini 2.0 Flash", "Vertex AI", 8192, image_input=True, structured_output=True),
    )

    def get_model_instance(self, model: str, context: CredentialContext | None = None) -> ModelHandle:
        settings = self.provider_settings(context)
        _, service_account_json = self.resolve_base_url_and_key(context)

        project_id = (settings.project_id if settings else None) or self.env_value(self.project_id_key, context)
        location_id = (settings.location if settings else None) or self.env_value(self.location_id_key, context)

        if not service_account_json:
            raise ConfigurationError(
                f"Vertex AI Service Account JSON is not configured for provider {self.name}.",
                provider=self.name,
            )
        if not project_id:
            raise ConfigurationError(
                f"Vertex AI Project ID is not configured for provider {self.name}.", provider=self.name
            )
        if not location_id:
            raise ConfigurationError(
                f"Vertex AI Location ID is not configured for provider {self.name}.", provider=self.name
            )

        try:
            credentials = json.loads(service_account_json)
        except ValueError as e:
            logger.error("Failed to parse Vertex AI Service Account JSON: %s", e)
            raise ConfigurationError(
                "Invalid Vertex AI Service Account JSON provided.", provider=self.name
            ) from e
        if not isinstance(credentials, dict):
            raise ConfigurationError("Invalid Vertex AI Service Account JSON provided.", provider=self.name)

        logger.info(
            "Creating Vertex AI model instance for model: %s, project: %s, location: %s",
            model,
            project_id,
            location_id,
        )

        return self.build_handle(
            model,
            headers=self.extra_headers(context),
            extra_params={
                "vertex_credentials": json.dumps(credentials),
                "vertex_project": project_id,
                "vertex_location": location_id,
            },
        )
