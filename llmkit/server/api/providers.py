"""Provider and catalog API endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from llmkit.core.registry import ProviderRegistry
from llmkit.providers.base import BaseProvider
from llmkit.server.api.schemas import (
    EnvKeyResponse,
    ModelListResponse,
    ModelResponse,
    ProviderListResponse,
    ProviderResponse,
)
from llmkit.server.dependencies import get_provider_registry
from llmkit.types import CredentialContext

logger = logging.getLogger(__name__)

router = APIRouter(tags=["providers"])


def _get_provider_or_404(registry: ProviderRegistry, name: str) -> BaseProvider:
    provider = registry.get_provider(name)
    if provider is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Provider {name} not found",
        )
    return provider


@router.get("/providers", response_model=ProviderListResponse)
async def list_providers(
    registry: ProviderRegistry = Depends(get_provider_registry),
) -> ProviderListResponse:
    """List registered providers with their static catalogs."""
    providers = registry.list_providers()
    return ProviderListResponse(
        providers=[ProviderResponse.from_provider(p) for p in providers],
        default_provider=providers[0].name if providers else None,
        total=len(providers),
    )


@router.post("/models", response_model=ModelListResponse)
async def refresh_models(
    credentials: CredentialContext,
    registry: ProviderRegistry = Depends(get_provider_registry),
) -> ModelListResponse:
    """Refresh dynamic catalogs with the caller's credentials and return the aggregate.

    Provider failures are logged and only drop that provider's dynamic models.
    """
    models = await registry.update_model_list(credentials)
    return ModelListResponse(
        models=[ModelResponse.from_descriptor(m) for m in models],
        total=len(models),
    )


@router.get("/providers/{name}/env-key", response_model=EnvKeyResponse)
async def check_env_key(
    name: str,
    registry: ProviderRegistry = Depends(get_provider_registry),
) -> EnvKeyResponse:
    """Whether the provider's API key is set in the server environment."""
    provider = _get_provider_or_404(registry, name)
    return EnvKeyResponse(is_set=provider.has_env_api_key())


@router.get("/providers/{name}/managed-identity", response_model=EnvKeyResponse)
async def check_managed_identity(
    name: str,
    registry: ProviderRegistry = Depends(get_provider_registry),
) -> EnvKeyResponse:
    """Whether managed identity is configured in the server environment."""
    provider = _get_provider_or_404(registry, name)
    return EnvKeyResponse(is_set=provider.supports_managed_identity and provider.has_managed_identity())
