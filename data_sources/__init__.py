"""
Data Sources Package
Geometry primitives, persisted state and API clients for external services
"""

from . import async_overpass_api
from . import async_routing_api
from . import kv_store
from . import region_dataset

__all__ = ['async_overpass_api', 'async_routing_api', 'kv_store', 'region_dataset']
