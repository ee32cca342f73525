"""
Market data providers and the selector that chooses between them.
"""
from equity_scorer.src.services.market_data.alpaca_provider import AlpacaDataProvider
from equity_scorer.src.services.market_data.base_provider import MarketDataProvider
from equity_scorer.src.services.market_data.data_source_selector import DataSourceSelector
from equity_scorer.src.services.market_data.yahoo_provider import YahooFinanceProvider

__all__ = [
    'AlpacaDataProvider',
    'DataSourceSelector',
    'MarketDataProvider',
    'YahooFinanceProvider',
]
