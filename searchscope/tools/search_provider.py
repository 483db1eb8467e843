from __future__ import annotations

from typing import Iterable

from searchscope.config import Settings
from searchscope.exceptions import ValidationError
from searchscope.models.schemas import ProviderId
from searchscope.tools.brave_search import BraveSearchAdapter
from searchscope.tools.google_search import GoogleSearchAdapter
from searchscope.tools.provider_base import ProviderAdapter
from searchscope.tools.pubmed_search import PubMedSearchAdapter
from searchscope.tools.tavily_search import TavilySearchAdapter

ADAPTER_TYPES: dict[ProviderId, type[ProviderAdapter]] = {
    ProviderId.GOOGLE: GoogleSearchAdapter,
    ProviderId.BRAVE: BraveSearchAdapter,
    ProviderId.TAVILY: TavilySearchAdapter,
    ProviderId.PUBMED: PubMedSearchAdapter,
}


def resolve_provider(name: str | ProviderId) -> ProviderId:
    if isinstance(name, ProviderId):
        return name
    try:
        return ProviderId(name.lower().strip())
    except ValueError:
        raise ValidationError(f"Unsupported search provider: {name}") from None


def build_adapters(settings: Settings) -> dict[ProviderId, ProviderAdapter]:
    return {provider_id: adapter_type(settings) for provider_id, adapter_type in ADAPTER_TYPES.items()}


def order_by_priority(providers: Iterable[ProviderId], settings: Settings) -> list[ProviderId]:
    """Deduplicate and order providers by the configured priority list."""
    priority = [resolve_provider(p) for p in settings.provider_priority]
    unique = list(dict.fromkeys(providers))
    return sorted(unique, key=lambda p: priority.index(p) if p in priority else len(priority))
