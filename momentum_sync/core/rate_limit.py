"""
PURPOSE: Rate limiting configuration for the inbound webhook using slowapi.

Provides a shared Limiter instance keyed by client IP address. The webhook
limit itself lives in settings (WEBHOOK_RATE_LIMIT) so deployments behind a
busy TradingView alert set can raise it without a code change.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from momentum_sync.config.settings import settings

# Shared limiter instance, keyed by client IP
limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)

# ── Rate limit tiers ──────────────────────────────────────────
WEBHOOK_LIMIT = settings.WEBHOOK_RATE_LIMIT
READ_LIMIT = "60/minute"
