"""Storage adapters.

Backends live in their own subpackages (``polystore.adapters.mongo``,
``polystore.adapters.rethink``) so that importing one never pulls in the
other's driver.
"""

from __future__ import annotations

from .base import BaseAdapter, split_updates

__all__ = ["BaseAdapter", "split_updates"]
