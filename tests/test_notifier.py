from __future__ import annotations

from unittest.mock import MagicMock

import requests

from spreadsheet_ranker.models import UpdateResult
from spreadsheet_ranker.notifier import EMBED_COLOR, DiscordNotifier

WEBHOOK = "https://discord.example/api/webhooks/1/abc"


def _notifier() -> tuple[DiscordNotifier, MagicMock]:
    session = MagicMock()
    return DiscordNotifier(WEBHOOK, timeout=5, session=session), session


def _embed(session: MagicMock) -> dict:
    _, kwargs = session.post.call_args
    return kwargs["json"]["embeds"][0]


def test_skips_without_webhook() -> None:
    session = MagicMock()
    notifier = DiscordNotifier(None, session=session)

    assert not notifier.enabled
    assert notifier.send("t", "d", []) is False
    session.post.assert_not_called()


def test_send_posts_embed() -> None:
    notifier, session = _notifier()

    assert notifier.send("Title", "Body", [{"name": "a", "value": "b", "inline": True}])

    args, kwargs = session.post.call_args
    assert args == (WEBHOOK,)
    assert kwargs["timeout"] == 5
    embed = _embed(session)
    assert embed["title"] == "Title"
    assert embed["color"] == EMBED_COLOR
    assert embed["timestamp"]


def test_delivery_failure_is_swallowed() -> None:
    notifier, session = _notifier()
    session.post.side_effect = requests.ConnectionError("down")

    assert notifier.send("Title", "Body", []) is False


def test_http_error_status_is_reported() -> None:
    notifier, session = _notifier()
    session.post.return_value.raise_for_status.side_effect = requests.HTTPError("400")

    assert notifier.send("Title", "Body", []) is False


def test_command_used_summarizes_raw_payloads() -> None:
    notifier, session = _notifier()

    notifier.command_used(
        "mod",
        [
            {"name": "alice", "department": "FMB", "field": "Points", "increment": 2},
            {"name": "bob", "department": "FMB", "field": "Points", "increment": 2},
        ],
    )

    fields = {item["name"]: item["value"] for item in _embed(session)["fields"]}
    assert fields == {
        "Command Issuer": "mod",
        "Department": "FMB",
        "Field": "Points",
        "Increment": "2",
        "Target Players": "alice, bob",
    }


def test_batch_results_success_and_failure_variants() -> None:
    notifier, session = _notifier()
    ok = UpdateResult(success=True, name="alice", department="FMB", field="Points")
    bad = UpdateResult(
        success=False, name="bob", department="FMB", field="Points", message="Value 'N/A' is not a number"
    )

    notifier.batch_results("mod", "FMB", [ok, bad])
    assert _embed(session)["title"] == "Activity Command Results"
    assert _embed(session)["description"] == "Successfully updated 1 player(s), 1 failed."

    notifier.batch_results("mod", "FMB", [bad])
    embed = _embed(session)
    assert embed["title"] == "Activity Command Failed"
    errors = next(item for item in embed["fields"] if item["name"] == "Errors")
    assert errors["value"] == "bob: Value 'N/A' is not a number"
    assert errors["inline"] is False


def test_long_field_values_are_truncated() -> None:
    notifier, session = _notifier()

    notifier.command_error(RuntimeError("x" * 5000))

    value = _embed(session)["fields"][0]["value"]
    assert len(value) == 1024
    assert value.endswith("...")
