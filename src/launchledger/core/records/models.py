"""Record data models: categories, kinds, declarations and launch records.

These are the core data types flowing through the inventory pipeline. They
are intentionally decoupled from discovery and scoring so that the CLI,
mutators and backup layer can import them without pulling in any OS access.

Records are immutable. A refresh cycle builds new records; updates to an
existing record go through ``dataclasses.replace``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class Category(str, Enum):
    """Inventory categories, one per OS-level source."""

    LOGIN_ITEMS = "login_items"
    AGENTS = "agents"
    DAEMONS = "daemons"
    BACKGROUND_ITEMS = "background_items"

    @property
    def heading(self) -> str:
        return _CATEGORY_TITLES[self]


_CATEGORY_TITLES: dict[Category, str] = {
    Category.LOGIN_ITEMS: "Login Items",
    Category.AGENTS: "Launch Agents",
    Category.DAEMONS: "Launch Daemons",
    Category.BACKGROUND_ITEMS: "Background Items",
}


class ItemKind(str, Enum):
    """Discriminator of the ``LaunchRecord`` tagged union."""

    LOGIN_ITEM = "login_item"
    AGENT = "agent"
    DAEMON = "daemon"
    BACKGROUND_ITEM = "background_item"


class Impact(IntEnum):
    """Three-level startup impact scale.

    The integer encoding enables direct comparison: LOW < MEDIUM < HIGH.
    """

    LOW = 1
    MEDIUM = 2
    HIGH = 3

    @property
    def label(self) -> str:
        return self.name.capitalize()


# ---------------------------------------------------------------------------
# LaunchDeclaration: the parsed subset of a launchd property list
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LaunchDeclaration:
    """Attributes of an agent or daemon declaration file relevant to scoring.

    Attributes:
        label: Service label, or the filename stem when the declaration
            omitted it (see ``label_from_filename``).
        program: Value of ``Program`` (may be empty).
        program_arguments: Value of ``ProgramArguments``.
        run_at_load: ``RunAtLoad`` is literally true.
        keep_alive: ``KeepAlive`` is literally true (dictionary forms of
            KeepAlive are conditional and do not count).
        has_start_interval: ``StartInterval`` is present.
        has_watch_paths: ``WatchPaths`` is a non-empty list.
        declares_watch_paths: ``WatchPaths`` is present, whatever its value.
        has_sockets: ``Sockets`` is present.
        nice: ``Nice`` process priority hint, if declared.
        label_from_filename: True when ``label`` was derived from the filename.
    """

    label: str
    program: str = ""
    program_arguments: tuple[str, ...] = ()
    run_at_load: bool = False
    keep_alive: bool = False
    has_start_interval: bool = False
    has_watch_paths: bool = False
    declares_watch_paths: bool = False
    has_sockets: bool = False
    nice: int | None = None
    label_from_filename: bool = False

    @property
    def executable(self) -> str:
        """Primary executable: ``Program`` or the first launch argument."""
        if self.program:
            return self.program
        return self.program_arguments[0] if self.program_arguments else ""


# ---------------------------------------------------------------------------
# LaunchRecord hierarchy
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LaunchRecord:
    """Shared capability set of every inventory item.

    Attributes:
        display_name: Human-readable name.
        path: Absolute path to the executable, bundle or declaration file.
            Empty when unresolved.
        enabled: Current best-known activation state.
        publisher: Optional attribution string.
        impact: Derived overall impact; None until scored.
    """

    display_name: str
    path: str
    enabled: bool
    publisher: str | None = None
    impact: Impact | None = None

    kind: ItemKind = field(init=False, default=ItemKind.LOGIN_ITEM)

    @property
    def identity_key(self) -> str:
        raise NotImplementedError


@dataclass(frozen=True)
class LoginItem(LaunchRecord):
    """An application launched when the user session starts."""

    kind: ItemKind = field(init=False, default=ItemKind.LOGIN_ITEM)

    @property
    def identity_key(self) -> str:
        return self.display_name


@dataclass(frozen=True)
class Agent(LaunchRecord):
    """A per-user launchd service."""

    declaration: LaunchDeclaration = field(
        default_factory=lambda: LaunchDeclaration(label="")
    )

    kind: ItemKind = field(init=False, default=ItemKind.AGENT)

    @property
    def label(self) -> str:
        return self.declaration.label

    @property
    def identity_key(self) -> str:
        return self.declaration.label


@dataclass(frozen=True)
class Daemon(LaunchRecord):
    """A system-wide launchd service."""

    declaration: LaunchDeclaration = field(
        default_factory=lambda: LaunchDeclaration(label="")
    )

    kind: ItemKind = field(init=False, default=ItemKind.DAEMON)

    @property
    def label(self) -> str:
        return self.declaration.label

    @property
    def keep_alive(self) -> bool:
        return self.declaration.keep_alive

    @property
    def identity_key(self) -> str:
        return self.declaration.label


@dataclass(frozen=True)
class BackgroundItem(LaunchRecord):
    """A component registered with background task management.

    Attributes:
        bundle_identifier: Bundle identifier, when the source reported one.
        item_type: Type reported by the helper ("login", "agent",
            "background").
    """

    bundle_identifier: str | None = None
    item_type: str = "background"

    kind: ItemKind = field(init=False, default=ItemKind.BACKGROUND_ITEM)

    @property
    def identity_key(self) -> str:
        return self.bundle_identifier or self.path


CATEGORY_KINDS: dict[Category, ItemKind] = {
    Category.LOGIN_ITEMS: ItemKind.LOGIN_ITEM,
    Category.AGENTS: ItemKind.AGENT,
    Category.DAEMONS: ItemKind.DAEMON,
    Category.BACKGROUND_ITEMS: ItemKind.BACKGROUND_ITEM,
}


def display_name_from_label(label: str) -> str:
    """Derive a short display name: the last dot-separated label component."""
    tail = label.rsplit(".", 1)[-1]
    return tail or label


def sort_key(record: LaunchRecord) -> tuple[str, str]:
    """Stable presentation order: case-insensitive name, then identity key."""
    return (record.display_name.casefold(), record.identity_key)
