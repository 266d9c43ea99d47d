"""Fetch client registry."""

from __future__ import annotations

from stockfeed.config import ProviderType
from stockfeed.providers.base import BaseFetchClient

# Lazy registry: classes imported on demand so the mock client works
# without touching the HTTP stack.
CLIENT_CLASSES: dict[ProviderType, str] = {
    ProviderType.ALPHAVANTAGE: "stockfeed.providers.alphavantage.AlphaVantageClient",
    ProviderType.MOCK: "stockfeed.providers.mock.MockFetchClient",
}


def create_client(
    provider_type: ProviderType | str,
    **kwargs,
) -> BaseFetchClient:
    """Instantiate a fetch client by type, forwarding kwargs to its constructor."""
    import importlib

    dotted = CLIENT_CLASSES[ProviderType(provider_type)]
    module_path, cls_name = dotted.rsplit(".", 1)
    module = importlib.import_module(module_path)
    cls = getattr(module, cls_name)
    return cls(**kwargs)


__all__ = ["BaseFetchClient", "CLIENT_CLASSES", "create_client"]
