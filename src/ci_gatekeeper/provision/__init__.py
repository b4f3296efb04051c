"""
Provisioning of large, slow-changing external artifacts.

- cache: keyed cache backends with atomic publish
- fetcher: HTTP downloads and installer scripts
- unpack: archive extraction and executable bits
- provisioner: ensure(spec) -> local path
"""

from ci_gatekeeper.provision.cache import (
    CacheBackend,
    LocalCacheBackend,
    NullCacheBackend,
    build_cache_key,
)
from ci_gatekeeper.provision.fetcher import Fetcher
from ci_gatekeeper.provision.provisioner import ProvisionStats, Provisioner

__all__ = [
    "CacheBackend",
    "Fetcher",
    "LocalCacheBackend",
    "NullCacheBackend",
    "ProvisionStats",
    "Provisioner",
    "build_cache_key",
]
