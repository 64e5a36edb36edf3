"""Unit tests for the preference router."""

from uuid import uuid4

import pytest

from domain.entities.notification import NotificationEvent, NotificationEventType
from domain.entities.preferences import (
    CATEGORY_BY_EVENT_TYPE,
    ChatMode,
    NotificationPreferences,
    PreferenceCategory,
)
from domain.services.preference_router import (
    Decision,
    category_for,
    route,
    route_without_preferences,
)

NON_CHAT_TYPES = [t for t, c in CATEGORY_BY_EVENT_TYPE.items() if c is not None]


def _event(event_type: NotificationEventType) -> NotificationEvent:
    return NotificationEvent(recipient_id=uuid4(), type=event_type, title="t")


def _prefs(**overrides) -> NotificationPreferences:
    return NotificationPreferences(user_id=uuid4(), **overrides)


class TestCategoryTable:
    def test_every_event_type_has_an_entry(self) -> None:
        assert set(CATEGORY_BY_EVENT_TYPE) == set(NotificationEventType)

    @pytest.mark.parametrize(
        ("event_type", "category"),
        [
            (NotificationEventType.MENTION, PreferenceCategory.TEAM_ACTIVITY),
            (NotificationEventType.TEAM_INVITE, PreferenceCategory.TEAM_ACTIVITY),
            (NotificationEventType.REPORT_READY, PreferenceCategory.TASK_UPDATES),
            (NotificationEventType.REMINDER, PreferenceCategory.TASK_UPDATES),
            (NotificationEventType.SYSTEM, PreferenceCategory.SYSTEM_ALERTS),
            (NotificationEventType.ACCOUNT_SECURITY, PreferenceCategory.ACCOUNT_SECURITY),
            (NotificationEventType.CHAT_MESSAGE, None),
            (NotificationEventType.CHAT_MENTION, None),
        ],
    )
    def test_category_for(self, event_type, category) -> None:
        assert category_for(event_type) == category


class TestRoute:
    @pytest.mark.parametrize("event_type", list(NotificationEventType))
    def test_defaults_deliver_everything(self, event_type) -> None:
        assert route(_event(event_type), _prefs()).should_deliver

    @pytest.mark.parametrize("event_type", list(NotificationEventType))
    def test_master_switch_off_suppresses_everything(self, event_type) -> None:
        decision = route(_event(event_type), _prefs(notifications_enabled=False))

        assert decision.decision == Decision.SUPPRESS
        assert decision.reason == "notifications_disabled"

    @pytest.mark.parametrize(
        ("mode", "event_type", "expected"),
        [
            (ChatMode.ALL, NotificationEventType.CHAT_MESSAGE, Decision.DELIVER),
            (ChatMode.ALL, NotificationEventType.CHAT_MENTION, Decision.DELIVER),
            (ChatMode.MENTIONS_ONLY, NotificationEventType.CHAT_MESSAGE, Decision.SUPPRESS),
            (ChatMode.MENTIONS_ONLY, NotificationEventType.CHAT_MENTION, Decision.DELIVER),
            (ChatMode.MUTED, NotificationEventType.CHAT_MESSAGE, Decision.SUPPRESS),
            (ChatMode.MUTED, NotificationEventType.CHAT_MENTION, Decision.SUPPRESS),
        ],
    )
    def test_chat_mode_matrix(self, mode, event_type, expected) -> None:
        assert route(_event(event_type), _prefs(chat_mode=mode)).decision == expected

    def test_chat_ignores_category_toggles(self) -> None:
        prefs = _prefs(
            team_activity=False, task_updates=False, system_alerts=False, account_security=False
        )

        assert route(_event(NotificationEventType.CHAT_MESSAGE), prefs).should_deliver

    @pytest.mark.parametrize("event_type", NON_CHAT_TYPES)
    def test_disabled_category_suppresses(self, event_type) -> None:
        category = CATEGORY_BY_EVENT_TYPE[event_type]

        decision = route(_event(event_type), _prefs(**{category.value: False}))

        assert decision.decision == Decision.SUPPRESS
        assert decision.reason == f"category_disabled:{category.value}"

    def test_other_categories_unaffected(self) -> None:
        prefs = _prefs(team_activity=False)

        assert route(_event(NotificationEventType.REMINDER), prefs).should_deliver
        assert not route(_event(NotificationEventType.MENTION), prefs).should_deliver

    def test_muted_chat_does_not_affect_other_types(self) -> None:
        prefs = _prefs(chat_mode=ChatMode.MUTED)

        assert route(_event(NotificationEventType.TEAM_INVITE), prefs).should_deliver

    def test_same_inputs_same_decision(self) -> None:
        event = _event(NotificationEventType.CHAT_MESSAGE)
        prefs = _prefs(chat_mode=ChatMode.MENTIONS_ONLY)

        assert route(event, prefs) == route(event, prefs)


class TestRouteWithoutPreferences:
    def test_security_fails_open(self) -> None:
        decision = route_without_preferences(_event(NotificationEventType.ACCOUNT_SECURITY))

        assert decision.should_deliver
        assert decision.reason == "preferences_unavailable:fail_open"

    @pytest.mark.parametrize(
        "event_type",
        [t for t in NotificationEventType if t != NotificationEventType.ACCOUNT_SECURITY],
    )
    def test_everything_else_fails_closed(self, event_type) -> None:
        decision = route_without_preferences(_event(event_type))

        assert decision.decision == Decision.SUPPRESS
        assert decision.reason == "preferences_unavailable:fail_closed"
