"""Provider adapters and the registry that builds them from config."""

from typing import Dict, Iterable, List, Type

from scancar.fetcher.http_client import AsyncHTTPClient
from scancar.models.config import AppConfig
from scancar.providers.base import Provider
from scancar.providers.bonbanh import BonbanhProvider
from scancar.providers.chotot import ChototProvider
from scancar.providers.otoanhluong import OtoAnhLuongProvider
from scancar.providers.vcar import VCarProvider
from scancar.providers.xeluottoantrung import XeLuotToanTrungProvider

PROVIDERS: Dict[str, Type[Provider]] = {
    cls.id: cls
    for cls in (
        XeLuotToanTrungProvider,
        OtoAnhLuongProvider,
        BonbanhProvider,
        ChototProvider,
        VCarProvider,
    )
}


def build_provider(provider_id: str, http_client: AsyncHTTPClient, config: AppConfig, logger=None) -> Provider:
    """
    Instantiate one provider with its config overrides applied.

    Raises:
        ValueError: If ``provider_id`` is not registered
    """
    cls = PROVIDERS.get(provider_id)
    if cls is None:
        raise ValueError(f"Unknown provider: {provider_id}. Known: {', '.join(sorted(PROVIDERS))}")

    override = config.provider_override(provider_id)
    return cls(
        http_client,
        logger=logger,
        base_url=override.base_url if override else None,
        allowed_hosts=override.allowed_hosts if override else None,
        pool_workers=config.enrichment_workers,
        pool_timeout=config.enrichment_timeout,
    )


def build_providers(
    provider_ids: Iterable[str], http_client: AsyncHTTPClient, config: AppConfig, logger=None
) -> List[Provider]:
    return [build_provider(provider_id, http_client, config, logger) for provider_id in provider_ids]


__all__ = [
    "PROVIDERS",
    "Provider",
    "BonbanhProvider",
    "ChototProvider",
    "OtoAnhLuongProvider",
    "VCarProvider",
    "XeLuotToanTrungProvider",
    "build_provider",
    "build_providers",
]
