"""
Utility modules for the payment gateway middleware
"""
from .config_loader import load_gateway_config, GatewayConfig, InstrumentConfig, TransportConfig

__all__ = [
    'load_gateway_config',
    'GatewayConfig',
    'InstrumentConfig',
    'TransportConfig',
]
