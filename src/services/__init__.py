"""Services for external API integrations"""
from .coingecko_service import CoinGeckoClient, CoinGeckoService, get_coingecko_service

__all__ = ['CoinGeckoClient', 'CoinGeckoService', 'get_coingecko_service']
