from typing import Callable

from src.domain.turns import TurnResult

from .ports import Notifier

_PLAIN = {
    "needs_description": "Describe the problem a bit more, please.",
    "needs_place": "Where is it? (room number or area, e.g. \"1205\", \"Lobby\")",
    "access_requested": "This number is not registered yet; an access request was sent.",
    "access_denied": "You are not allowed to do that from this conversation.",
    "submit_failed": "Could not save the incident. Reply \"si\" to retry.",
    "cancelled": "Cancelled.",
    "not_found": "No incident with that folio.",
    "smalltalk": "Hi! Tell me what needs fixing and where.",
    "help": "Report a problem with its place, e.g. \"1205 no enciende el aire\". /cancel discards a draft.",
    "unknown": "I only handle hotel incidents. Tell me what needs fixing and where.",
    "unknown_command": "Unknown command. Try /help.",
    "fallback": "Something went wrong on our side. Please try again.",
}


def render(result: TurnResult, label_for: Callable[[str], str] = str.upper) -> str:
    """Plain development rendering of a TurnResult."""
    action = result.action
    draft = result.draft or {}

    if action == "needs_place_choice":
        if result.prompt:
            return result.prompt
        lines = ["Which place do you mean?"]
        lines += [f"{o['key']}) {o['label']}" for o in result.options]
        return "\n".join(lines)

    if action == "needs_area":
        lines = ["Which department should handle it?"]
        lines += [f"{o['key']}) {o['label']}" for o in result.options]
        return "\n".join(lines)

    if action == "preview":
        lines = [
            "Incident preview",
            f"  Description: {draft.get('description') or '-'}",
            f"  Place:       {draft.get('place') or '-'}",
            f"  Department:  {label_for(draft['department']) if draft.get('department') else '-'}",
        ]
        for note in draft.get("notes") or []:
            lines.append(f"  Note:        {note}")
        lines.append("Send it? (si / no)")
        return "\n".join(lines)

    if action == "submitted" and result.incident:
        inc = result.incident
        return f"Incident {inc.folio} created for {label_for(inc.department)} at {inc.place}."

    if action == "status":
        if result.incident:
            inc = result.incident
            return f"{inc.folio}: {inc.status} ({inc.place}, {label_for(inc.department)})"
        if not result.incidents:
            return "You have no open incidents."
        return "\n".join(f"{i.folio}: {i.status} ({i.place})" for i in result.incidents)

    if action == "team_update_recorded" and result.incident:
        return f"Update added to {result.incident.folio} (status: {result.incident.status})."

    return _PLAIN.get(action, action)


class ConsoleNotifier(Notifier):
    """Adapter: print rendered results to the console. For dev/testing."""

    def __init__(self, label_for: Callable[[str], str] = str.upper):
        self._label_for = label_for

    async def send(self, result: TurnResult) -> None:
        print(f"\n{'=' * 60}")
        print(f"  TO: {result.conversation_id}   [{result.action}]")
        print(f"{'=' * 60}")
        print(render(result, self._label_for))
        print(f"{'=' * 60}\n")
