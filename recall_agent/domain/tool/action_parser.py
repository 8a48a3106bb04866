from typing import Optional

from recall_agent.domain.models.agent_state import ActionDirective, ActionKind

SAVE_NOTE_MARKER = "ACTION_SAVE_NOTE:"


class ActionParser:
    """Recognizes a directive marker at the very start of generated text"""

    def __init__(self, marker: str = SAVE_NOTE_MARKER):
        self.marker = marker

    def parse(self, generated_text: str) -> Optional[ActionDirective]:
        # Exact, case-sensitive, offset 0 only
        if not generated_text.startswith(self.marker):
            return None
        payload = generated_text[len(self.marker):].strip()
        return ActionDirective(kind=ActionKind.SAVE_NOTE, payload=payload)
