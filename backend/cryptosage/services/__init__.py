"""
CryptoSage Services

Service layer: provider access, fallback chains, caching, reconciliation,
polling and news aggregation.
"""

from cryptosage.services.base import ChainExhaustedError, ProviderError, ServiceError

__all__ = ["ServiceError", "ProviderError", "ChainExhaustedError"]
