"""Chat input button settings.

Settings of the chat-input button tweaks: which action buttons to hide,
which to force-show, and when the action row and the send button collapse.

Schema history:
    1: flat hide flags {voice, gift, thread, app}
    2: hide flags nested under "hide", plus neverDismiss / sendDismiss
    3: adds show.thread
    4: neverDismiss / sendDismiss replaced by dismiss.{actions, send}

The helpers at the bottom turn the stored flags into the props the host's
chat input components read.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from versionstore.registry import MigrationRegistry
from versionstore.schema import SchemaShape
from versionstore.store import StoreDefinition, VersionedStore

CURRENT_VERSION = 4

HIDE_KEYS = ("app", "gift", "thread", "voice")

_HIDE_SHAPE = {key: bool for key in HIDE_KEYS}

SCHEMAS = {
    1: SchemaShape(_HIDE_SHAPE),
    2: SchemaShape({"hide": _HIDE_SHAPE, "neverDismiss": bool, "sendDismiss": bool}),
    3: SchemaShape({
        "hide": _HIDE_SHAPE,
        "show": {"thread": bool},
        "neverDismiss": bool,
        "sendDismiss": bool,
    }),
    4: SchemaShape({
        "hide": _HIDE_SHAPE,
        "show": {"thread": bool},
        "dismiss": {"actions": bool, "send": bool},
    }),
}


def initialize() -> dict[str, Any]:
    return {
        "hide": {"app": True, "gift": True, "thread": True, "voice": True},
        "show": {"thread": False},
        "dismiss": {"actions": True, "send": False},
    }


migrations = MigrationRegistry()


@migrations.register(1)
def nest_hide_flags(old: dict[str, Any]) -> dict[str, Any]:
    """Nest the flat hide flags under "hide"."""
    return {"hide": old, "neverDismiss": True, "sendDismiss": False}


@migrations.register(2)
def add_show_thread(old: dict[str, Any]) -> dict[str, Any]:
    """Add show.thread."""
    return {**old, "show": {"thread": False}}


@migrations.register(3)
def group_dismiss_flags(old: dict[str, Any]) -> dict[str, Any]:
    """Replace neverDismiss / sendDismiss with dismiss.{actions, send}."""
    new = {k: v for k, v in old.items() if k not in ("neverDismiss", "sendDismiss")}
    new["dismiss"] = {"actions": not old.get("neverDismiss", False), "send": False}
    return new


DEFINITION = StoreDefinition(
    name="chat_input",
    version=CURRENT_VERSION,
    initialize=initialize,
    migrations=migrations,
    schema=SCHEMAS[CURRENT_VERSION],
    schemas={v: s for v, s in SCHEMAS.items() if v != CURRENT_VERSION},
)


# =============================================================================
# Feature logic
# =============================================================================


@dataclass(frozen=True)
class ButtonVisibility:
    """Which chat input buttons are shown, derived from the stored flags."""

    voice_message: bool
    app_launcher: bool
    threads: bool
    gift: bool
    collapse_actions: bool
    collapse_send: bool

    @classmethod
    def from_store(cls, store: VersionedStore) -> "ButtonVisibility":
        return cls(
            voice_message=not store.get("hide.voice"),
            app_launcher=not store.get("hide.app"),
            threads=bool(store.get("show.thread")) or not store.get("hide.thread"),
            gift=not store.get("hide.gift"),
            collapse_actions=bool(store.get("dismiss.actions")),
            collapse_send=bool(store.get("dismiss.send")),
        )


def effective_hide(store: VersionedStore, key: str) -> bool:
    """Hide flag as the settings screen shows it.

    Force-showing threads overrides hiding them.
    """
    if key == "thread" and store.get("show.thread"):
        return False
    return bool(store.get(f"hide.{key}"))


def apply_send_button_props(props: dict[str, Any], store: VersionedStore) -> None:
    """Adjust send-button props in place."""
    if props.get("canSendVoiceMessage"):
        props["canSendVoiceMessage"] = not store.get("hide.voice")


def apply_actions_props(props: dict[str, Any], store: VersionedStore) -> None:
    """Adjust action-row props in place."""
    visibility = ButtonVisibility.from_store(store)
    if props.get("isAppLauncherEnabled"):
        props["isAppLauncherEnabled"] = visibility.app_launcher
    props["canStartThreads"] = visibility.threads
    props["shouldShowGiftButton"] = visibility.gift
