# Overview: Page-invalidation events emitted after successful mutations.

"""
Page invalidation.

The admin UI caches rendered pages per route. After a mutation commits, the
service that made it announces which logical pages are now stale through the
`page_invalidated` blinker signal:

    sender   -> enterprise id whose data changed (None for public pages)
    page     -> route path, one of the PAGE_* constants

Nothing is emitted for a rolled-back unit of work: services call
`invalidate()` only after their commit returns.

Receivers (a CDN purge, a websocket push, tests) connect with
`page_invalidated.connect(fn)`. The default receiver only logs.
"""

from __future__ import annotations

from blinker import Namespace
from flask import current_app, has_app_context


PAGE_PRODUCTS = "/administrative/stock-management/products"
PAGE_SUPPLIERS = "/administrative/stock-management/suppliers"
PAGE_CLIENTS = "/administrative/sales-management/clients"
PAGE_SALES = "/administrative/sales-management/sales"
PAGE_BUDGETS = "/administrative/sales-management/budgets"
PAGE_ENTERPRISE_SETTINGS = "/administrative/settings/enterprise"
PAGE_ACCOUNT_SETTINGS = "/administrative/settings/account"
PAGE_STOREFRONT = "/clients/store"
PAGE_STOREFRONT_CART = "/clients/store/cart"

_signals = Namespace()

page_invalidated = _signals.signal("page-invalidated")


def invalidate(enterprise_id: int | None, *pages: str) -> None:
    """Announce that the given pages of one tenant are stale."""
    for page in dict.fromkeys(pages):
        page_invalidated.send(enterprise_id, page=page)


@page_invalidated.connect
def _log_invalidation(sender, page: str, **kwargs) -> None:
    if has_app_context():
        current_app.logger.debug("Page invalidated: %s (enterprise_id=%s)", page, sender)
