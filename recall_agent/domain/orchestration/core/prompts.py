from recall_agent.domain.tool.action_parser import SAVE_NOTE_MARKER

SYSTEM_INSTRUCTION = f"""You are a helpful assistant with a long-term memory of the user's notes.
IMPORTANT: If the user explicitly asks you to "save a note" or "remember this",
do not reply with normal text. Instead, start your reply exactly with:
{SAVE_NOTE_MARKER} followed by the content to save."""


def build_prompt(user_text: str, context_fragment: str = "") -> str:
    """Concatenate the system instruction, retrieved memory and the user's text"""

    sections = [SYSTEM_INSTRUCTION]
    if context_fragment:
        sections.append(f"Relevant notes from memory: {context_fragment}")
    sections.append(f"User: {user_text}")
    return "\n".join(sections)
