"""
BTC/JPY Arbitrage Monitor

Polls Japanese cryptocurrency exchanges, detects cross-exchange arbitrage
opportunities, estimates fee-adjusted profit and streams the results.
"""

__version__ = "1.0.0"
__author__ = "BTC/JPY Arbitrage Monitor Team"
