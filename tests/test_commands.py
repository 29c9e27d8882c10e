"""Tests for worker message parsing and the command model."""

from __future__ import annotations

from dataclasses import FrozenInstanceError

import pytest
from pydantic import ValidationError

from helpers import clicked, dismissed, displayed, redirect
from pushrelay.core.commands import (
    Clicked,
    CommandKind,
    Dismissed,
    Displayed,
    RedirectRequested,
    parse_command,
    thaw,
)
from pushrelay.core.errors import InvalidCommand


def test_command_kind_wire_values() -> None:
    assert CommandKind.NOTIFICATION_DISPLAYED.value == "notification.displayed"
    assert CommandKind.NOTIFICATION_CLICKED.value == "notification.clicked"
    assert CommandKind.NOTIFICATION_DISMISSED.value == "notification.dismissed"
    assert CommandKind.REDIRECT.value == "command.redirect"


def test_parse_displayed_and_dismissed() -> None:
    shown = parse_command(displayed({"id": "n1", "heading": "Hi"}))
    gone = parse_command(dismissed({"id": "n1"}))
    assert isinstance(shown, Displayed)
    assert shown.payload == {"id": "n1", "heading": "Hi"}
    assert shown.kind is CommandKind.NOTIFICATION_DISPLAYED
    assert isinstance(gone, Dismissed)
    assert gone.kind is CommandKind.NOTIFICATION_DISMISSED


def test_parse_clicked_with_url() -> None:
    command = parse_command(clicked({"id": "n1", "url": "https://example.com/target"}))
    assert isinstance(command, Clicked)
    assert command.url == "https://example.com/target"
    assert command.payload["id"] == "n1"


@pytest.mark.parametrize("payload", [{}, {"url": None}, {"url": ""}, {"url": 7}])
def test_parse_clicked_without_usable_url(payload: dict) -> None:
    command = parse_command(clicked(payload))
    assert isinstance(command, Clicked)
    assert command.url is None


def test_missing_payload_is_empty_metadata() -> None:
    command = parse_command({"command": "notification.displayed"})
    assert command.payload == {}


def test_parse_redirect() -> None:
    command = parse_command(redirect("https://example.com/next"))
    assert isinstance(command, RedirectRequested)
    assert command.target == "https://example.com/next"


@pytest.mark.parametrize("payload", [None, "", 42, {"url": "https://example.com"}])
def test_redirect_requires_url_string(payload: object) -> None:
    with pytest.raises(InvalidCommand):
        parse_command({"command": "command.redirect", "payload": payload})


def test_notification_payload_must_be_object() -> None:
    with pytest.raises(InvalidCommand):
        parse_command({"command": "notification.clicked", "payload": ["not", "an", "object"]})


def test_unknown_command_is_rejected() -> None:
    with pytest.raises(ValidationError):
        parse_command({"command": "notification.exploded", "payload": {}})


def test_commands_are_immutable() -> None:
    source = {"id": "n1", "url": "https://example.com/target"}
    command = parse_command(clicked(source))

    with pytest.raises(FrozenInstanceError):
        command.url = "https://elsewhere.example"  # type: ignore[misc]
    with pytest.raises(TypeError):
        command.payload["id"] = "changed"  # type: ignore[index]

    source["id"] = "mutated after parse"
    assert command.payload["id"] == "n1"


def test_nested_payload_is_frozen_all_the_way_down() -> None:
    source = {"id": "n1", "meta": {"tags": ["a", "b"]}}
    command = parse_command(displayed(source))

    with pytest.raises(TypeError):
        command.payload["meta"]["tags"] = []  # type: ignore[index]
    assert command.payload["meta"]["tags"] == ("a", "b")

    source["meta"]["tags"].append("c")
    assert command.payload["meta"]["tags"] == ("a", "b")


def test_thaw_returns_independent_plain_copies() -> None:
    command = parse_command(clicked({"id": "n1", "meta": {"tags": ["a"]}}))

    first = thaw(command.payload)
    second = thaw(command.payload)
    first["meta"]["tags"].append("b")

    assert first == {"id": "n1", "meta": {"tags": ["a", "b"]}}
    assert second == {"id": "n1", "meta": {"tags": ["a"]}}
    assert type(second["meta"]) is dict
