"""LaunchLedger: Inventory, reconciliation and impact scoring for macOS autostart items."""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Namespace under which persisted state and exports are keyed.
_PRODUCT_ID = "launchledger"
_SNAPSHOT_NAMESPACE = "com.launchledger.SavedLoginItems"
