"""Core shared logic for indicators, the entry rule, and trade simulation.

This package contains pure business logic with no I/O dependencies
(no network access). It is shared between the live simulator (app/)
and the offline replay CLI (backtest/).
"""
