"""
StaticAccessGate: allow-list AccessGate backed by a JSON file.

File shape:

    {
      "allow_all": false,
      "conversations": {
        "5215550001": {"role": "staff", "may_create_incident": true},
        "ops-group":  {"role": "team", "may_update_incident": true}
      },
      "members": {
        "5215550009": {"role": "supervisor", "may_update_incident": true}
      }
    }

A conversation entry admits the conversation.  In groups, a member entry
for the author adds capabilities on top of the group's own.
"""

import json
import logging

from src.domain.access import AccessDecision, AccessGate

log = logging.getLogger(__name__)


class StaticAccessGate(AccessGate):

    def __init__(
        self,
        conversations: dict[str, dict] | None = None,
        members: dict[str, dict] | None = None,
        allow_all: bool = False,
    ):
        self._conversations = conversations or {}
        self._members = members or {}
        self._allow_all = allow_all
        self.access_requests: list[tuple[str, str, str]] = []

    @classmethod
    def from_file(cls, path: str) -> "StaticAccessGate":
        with open(path, encoding="utf-8") as f:
            raw = json.load(f)
        return cls(
            conversations=raw.get("conversations", {}),
            members=raw.get("members", {}),
            allow_all=bool(raw.get("allow_all", False)),
        )

    async def check(self, conversation_id: str, author: str | None = None) -> AccessDecision:
        entry = self._conversations.get(conversation_id)
        if entry is None and not self._allow_all:
            return AccessDecision(allowed=False, reason="not_registered")

        entry = dict(entry or {"role": "staff", "may_create_incident": True})
        member = self._members.get(author or "")
        if member:
            entry["role"] = member.get("role", entry.get("role", ""))
            for flag in ("may_create_incident", "may_update_incident"):
                entry[flag] = entry.get(flag, False) or member.get(flag, False)

        return AccessDecision(
            allowed=True,
            role=entry.get("role", ""),
            may_create_incident=bool(entry.get("may_create_incident", False)),
            may_update_incident=bool(entry.get("may_update_incident", False)),
            reason="allow_all" if conversation_id not in self._conversations else "registered",
        )

    async def request_access(self, conversation_id: str, author: str, text: str) -> None:
        log.info("conv=%s access requested by %s", conversation_id, author)
        self.access_requests.append((conversation_id, author, text))
