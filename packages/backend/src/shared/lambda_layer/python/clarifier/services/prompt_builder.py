"""
Synthesis prompt construction.

The full history is rendered in order; windowing for token budgets is left
to the model gateway.
"""

from typing import Dict, Sequence

from clarifier.models.session import ConversationTurn, Domain, Role

SYSTEM_PROMPT = "You are an expert at synthesizing conversations into structured briefs."

BRIEF_SECTIONS = (
    "Core Goal",
    "Key Context",
    "Target Audience",
    "Requirements",
    "Success Criteria",
)

EMPTY_HISTORY_PLACEHOLDER = "(No conversation history)"

# What the user was describing, per domain
DOMAIN_SUBJECTS: Dict[Domain, str] = {
    Domain.BUSINESS: "business idea",
    Domain.PRODUCT: "product idea",
    Domain.CREATIVE: "creative project",
    Domain.RESEARCH: "research question",
    Domain.TECHNICAL: "technical project",
}

SPEAKER_LABELS = {Role.USER: "User", Role.ASSISTANT: "Assistant"}

PROMPT_TEMPLATE = """You are an expert at distilling conversations into structured briefs.

The following is a Q&A session where a user discussed their {subject}. Synthesize this entire conversation into a comprehensive, well-structured brief (200-300 words) that captures:

1. Core goal/objective
2. Key context and constraints
3. Target audience or users
4. Important requirements or preferences
5. Success criteria

Format the brief with clear sections. Be specific and include all relevant details from the conversation.

CONVERSATION:
{conversation}

Write the brief using exactly these section headings, in this order:
{sections}

BRIEF:"""


def format_history(history: Sequence[ConversationTurn]) -> str:
    if not history:
        return EMPTY_HISTORY_PLACEHOLDER
    return "\n\n".join(f"{SPEAKER_LABELS[turn.role]}: {turn.content}" for turn in history)


def build(domain: Domain, history: Sequence[ConversationTurn]) -> str:
    """Render the synthesis prompt for an already validated conversation."""
    return PROMPT_TEMPLATE.format(
        subject=DOMAIN_SUBJECTS[domain],
        conversation=format_history(history),
        sections="\n".join(f"## {section}" for section in BRIEF_SECTIONS),
    )
