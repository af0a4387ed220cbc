"""
PURPOSE: Webhook module for momentum-sync: handles inbound TradingView indicator alerts.

Normalizes alert payloads into indicator updates and drives them through the
state merger and the sheet reconciler.
"""
