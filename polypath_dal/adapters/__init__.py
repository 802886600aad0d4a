"""
Adapters package - Bridge/DEX provider adapter implementations.
"""

from polypath_dal.adapters.base import AdapterRequest, BaseBridgeAdapter
from polypath_dal.adapters.factory import AdapterFactory, create_adapter
from polypath_dal.adapters.generic import JsonQuoteAdapter
from polypath_dal.adapters.stargate import StargateAdapter
from polypath_dal.adapters.wormhole import WormholeAdapter


__all__ = [
    "AdapterRequest",
    "BaseBridgeAdapter",
    "AdapterFactory",
    "create_adapter",
    "JsonQuoteAdapter",
    "StargateAdapter",
    "WormholeAdapter",
]
