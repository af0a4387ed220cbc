"""
momentum-sync: TradingView indicator webhooks stored per ticker and mirrored to Google Sheets.
"""

__version__ = "0.2.0"
