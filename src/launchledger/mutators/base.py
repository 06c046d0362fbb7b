"""Base interface and result type for OS-level mutations.

A mutator changes the live system; it never touches the inventory store.
The ``InventoryManager`` serialises every mutation with the affected
category's refresh lock and refreshes that category afterwards, so the store
only ever reflects what the system reports back.

Failures raise ``MutationError`` carrying the command, exit status, path and
captured stderr, so the caller can show them verbatim and the user can retry
by hand.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum

from launchledger.core.records.models import LaunchRecord
from launchledger.exceptions import MutationError


class PriorityDirection(str, Enum):
    """Where a login item is moved in the launch order."""

    HIGH = "high"
    LOW = "low"


class MutationAction(str, Enum):
    ENABLE = "enable"
    DISABLE = "disable"
    REMOVE = "remove"
    PRIORITY = "priority"
    PROCESS_PRIORITY = "process_priority"


@dataclass(frozen=True)
class MutationResult:
    """Successful outcome of one mutation.

    Attributes:
        identity_key: Identity of the mutated record.
        action: What was done.
        commands: Argument vectors executed, in order.
        message: Short human-readable summary.
    """

    identity_key: str
    action: MutationAction
    commands: list[tuple[str, ...]] = field(default_factory=list)
    message: str = ""


class Mutator(ABC):
    """Abstract base class for enable/disable, removal and reordering."""

    @abstractmethod
    def set_enabled(self, record: LaunchRecord, enabled: bool) -> MutationResult:
        """Enable or disable ``record`` at the OS level.

        Raises:
            MutationError: If the OS rejected the change.
        """

    @abstractmethod
    def remove(self, record: LaunchRecord) -> MutationResult:
        """Remove ``record`` from the system.

        Raises:
            MutationError: If the item is protected or removal failed.
        """

    @abstractmethod
    def set_priority(self, record: LaunchRecord, direction: PriorityDirection) -> MutationResult:
        """Move a login item to the beginning or end of the launch order.

        Raises:
            MutationError: If the record is not a login item or the move failed.
        """

    def set_process_priority(self, record: LaunchRecord, nice: int) -> MutationResult:
        """Change the declared scheduling priority of an agent or daemon.

        Raises:
            MutationError: Always, unless a subclass supports it.
        """
        raise MutationError(f"{type(self).__name__} cannot change process priority")
