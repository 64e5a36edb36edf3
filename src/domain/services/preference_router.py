"""Preference-based routing of notification events.

Routing is a pure function of ``(event, preferences)`` so a redelivered
event always gets the same decision. Rules, first match wins:

1. Master switch off: suppress.
2. Chat events follow ``chat_mode``: ``mute`` suppresses both chat types,
   ``mentions`` suppresses plain messages only.
3. Events whose category toggle is off: suppress.
4. Everything else: deliver.
"""

from dataclasses import dataclass
from enum import StrEnum

from domain.entities.notification import NotificationEvent, NotificationEventType
from domain.entities.preferences import (
    CATEGORY_BY_EVENT_TYPE,
    CHAT_EVENT_TYPES,
    ChatMode,
    NotificationPreferences,
    PreferenceCategory,
)


class Decision(StrEnum):
    """Routing outcome."""

    DELIVER = "deliver"
    SUPPRESS = "suppress"


@dataclass(frozen=True, slots=True)
class RoutingDecision:
    """A decision plus the rule that produced it (for logs and stored reasons)."""

    decision: Decision
    reason: str

    @property
    def should_deliver(self) -> bool:
        return self.decision == Decision.DELIVER


def category_for(event_type: NotificationEventType) -> PreferenceCategory | None:
    """Category toggle governing an event type, None for chat types."""
    return CATEGORY_BY_EVENT_TYPE[event_type]


def is_security_event(event_type: NotificationEventType) -> bool:
    return category_for(event_type) == PreferenceCategory.ACCOUNT_SECURITY


def route(event: NotificationEvent, prefs: NotificationPreferences) -> RoutingDecision:
    """Decide whether an event should be delivered under the given preferences."""
    if not prefs.notifications_enabled:
        return RoutingDecision(Decision.SUPPRESS, "notifications_disabled")

    if event.type in CHAT_EVENT_TYPES:
        if prefs.chat_mode == ChatMode.MUTED:
            return RoutingDecision(Decision.SUPPRESS, "chat_muted")
        if (
            prefs.chat_mode == ChatMode.MENTIONS_ONLY
            and event.type == NotificationEventType.CHAT_MESSAGE
        ):
            return RoutingDecision(Decision.SUPPRESS, "chat_mentions_only")
        return RoutingDecision(Decision.DELIVER, f"chat_mode:{prefs.chat_mode.value}")

    category = category_for(event.type)
    if category is not None and not prefs.is_enabled(category):
        return RoutingDecision(Decision.SUPPRESS, f"category_disabled:{category.value}")

    return RoutingDecision(Decision.DELIVER, "allowed")


def route_without_preferences(event: NotificationEvent) -> RoutingDecision:
    """Decision used when preferences could not be loaded.

    Account-security notices fail open; everything else fails closed.
    """
    if is_security_event(event.type):
        return RoutingDecision(Decision.DELIVER, "preferences_unavailable:fail_open")
    return RoutingDecision(Decision.SUPPRESS, "preferences_unavailable:fail_closed")
