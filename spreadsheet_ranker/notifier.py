from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence

import requests

from .models import UpdateResult

LOGGER = logging.getLogger(__name__)

EMBED_COLOR = 3447003
# Discord rejects embed field values longer than this
_FIELD_VALUE_LIMIT = 1024


def _field(name: str, value: Any, inline: bool = True) -> Dict[str, Any]:
    text = str(value) if value not in (None, "") else "Unknown"
    if len(text) > _FIELD_VALUE_LIMIT:
        text = text[: _FIELD_VALUE_LIMIT - 3] + "..."
    return {"name": name, "value": text, "inline": inline}


class DiscordNotifier:
    """Post activity summaries to a Discord channel webhook."""

    def __init__(
        self,
        webhook_url: Optional[str],
        *,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._webhook_url = webhook_url
        self._timeout = timeout
        self._session = session or requests.Session()

    @property
    def enabled(self) -> bool:
        return bool(self._webhook_url)

    def send(self, title: str, description: str, fields: List[Dict[str, Any]]) -> bool:
        """Deliver one embed; failures are logged and reported as False."""

        if not self._webhook_url:
            LOGGER.warning("Discord webhook URL not configured. Skipping webhook notification.")
            return False

        payload = {
            "embeds": [
                {
                    "title": title,
                    "description": description,
                    "color": EMBED_COLOR,
                    "fields": fields,
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                }
            ]
        }
        try:
            response = self._session.post(self._webhook_url, json=payload, timeout=self._timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            LOGGER.error("Failed to send Discord webhook notification: %s", exc)
            return False

        LOGGER.info("Discord webhook notification sent successfully")
        return True

    # Messages ----------------------------------------------------------------
    def command_used(self, invoker: str, payloads: Sequence[Mapping[str, Any]]) -> bool:
        """Announce a batch before it runs, using the raw (unvalidated) payloads."""

        first = payloads[0] if payloads and isinstance(payloads[0], Mapping) else {}
        increment = first.get("increment", first.get("amount"))
        targets = ", ".join(
            str(payload.get("name")) for payload in payloads
            if isinstance(payload, Mapping) and payload.get("name")
        )
        return self.send(
            "Activity Command Used",
            "A staff member is recording activity in the spreadsheet.",
            [
                _field("Command Issuer", invoker),
                _field("Department", first.get("department")),
                _field("Field", first.get("field")),
                _field("Increment", 1 if increment is None else increment),
                _field("Target Players", targets, inline=False),
            ],
        )

    def batch_results(
        self, invoker: str, department: Optional[str], results: Sequence[UpdateResult]
    ) -> bool:
        succeeded = sum(1 for result in results if result.success)
        failed = len(results) - succeeded
        if succeeded:
            return self.send(
                "Activity Command Results",
                f"Successfully updated {succeeded} player(s), {failed} failed.",
                [
                    _field("Command Issuer", invoker),
                    _field("Status", "Success"),
                    _field("Department", department),
                ],
            )

        error_lines = "\n".join(
            f"{result.name}: {result.message}" for result in results if not result.success
        )
        return self.send(
            "Activity Command Failed",
            "Failed to record activity in the spreadsheet.",
            [
                _field("Command Issuer", invoker),
                _field("Department", department),
                _field("Errors", error_lines or "Unknown error", inline=False),
            ],
        )

    def command_error(self, error: BaseException) -> bool:
        return self.send(
            "Activity Command Error",
            "An error occurred while processing the activity command.",
            [_field("Error", str(error), inline=False)],
        )
