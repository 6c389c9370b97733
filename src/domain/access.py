"""
AccessGate port: who may talk to the triage bot, and what they may do.

Authorization data lives outside this system.  Denied direct conversations
are offered the access-request sub-flow; approving those requests happens
elsewhere.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass
class AccessDecision:
    allowed: bool
    role: str = ""
    may_create_incident: bool = False
    may_update_incident: bool = False
    reason: str = ""


class AccessGate(ABC):

    @abstractmethod
    async def check(self, conversation_id: str, author: str | None = None) -> AccessDecision:
        """`author` matters for group conversations, where members differ."""
        ...

    @abstractmethod
    async def request_access(self, conversation_id: str, author: str, text: str) -> None:
        """Record that an unknown conversation asked to be let in."""
        ...
