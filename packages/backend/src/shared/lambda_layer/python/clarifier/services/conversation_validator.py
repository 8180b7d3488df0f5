from collections.abc import Sequence
from typing import Any, List

from clarifier.models.errors import ValidationError
from clarifier.models.session import ConversationTurn, Domain, Role, ValidatedConversation

VALID_ROLES = {role.value for role in Role}


def _field(turn: Any, name: str) -> Any:
    if isinstance(turn, ConversationTurn):
        value = getattr(turn, name)
        return value.value if isinstance(value, Role) else value
    if isinstance(turn, dict):
        return turn.get(name)
    return None


def _check_role(turn: Any, index: int) -> str:
    role = _field(turn, "role")
    if not isinstance(role, str) or role not in VALID_ROLES:
        raise ValidationError(
            f"Turn {index} has invalid role {role!r}, expected 'user' or 'assistant'",
            f"history[{index}].role",
        )
    return role


def _check_content(turn: Any, index: int) -> str:
    content = _field(turn, "content")
    if not isinstance(content, str) or not content.strip():
        raise ValidationError(f"Turn {index} has empty content", f"history[{index}].content")
    return content


def validate_domain(domain: Any) -> Domain:
    if isinstance(domain, Domain):
        return domain
    if not isinstance(domain, str) or not domain:
        raise ValidationError("Domain must be a non-empty string", "domain")
    try:
        return Domain(domain)
    except ValueError:
        allowed = ", ".join(d.value for d in Domain)
        raise ValidationError(f"Unknown domain '{domain}', expected one of: {allowed}", "domain")


def validate_turn(turn: Any, index: int = 0) -> ConversationTurn:
    """Validate a single conversation turn; used when appending to a live session."""
    role = _check_role(turn, index)
    content = _check_content(turn, index)
    return ConversationTurn(role=Role(role), content=content)


def validate(domain: Any, history: Any) -> ValidatedConversation:
    """
    Validate a domain tag and conversation history before synthesis.

    Rules are applied in order and the first failure wins: the domain, then
    that history is a sequence, then every turn's role, then every turn's
    content. An empty history is valid.

    Args:
        domain: Domain tag, one of the Domain values
        history: Ordered sequence of turns (dicts or ConversationTurn)

    Returns:
        ValidatedConversation: Typed domain and history, order preserved

    Raises:
        ValidationError: On the first rule violated
    """
    validated_domain = validate_domain(domain)

    if isinstance(history, (str, bytes)) or not isinstance(history, Sequence):
        raise ValidationError("History must be an ordered sequence of turns", "history")

    roles = [_check_role(turn, index) for index, turn in enumerate(history)]
    contents = [_check_content(turn, index) for index, turn in enumerate(history)]

    turns: List[ConversationTurn] = [
        ConversationTurn(role=Role(role), content=content) for role, content in zip(roles, contents)
    ]
    return ValidatedConversation(domain=validated_domain, history=turns)
