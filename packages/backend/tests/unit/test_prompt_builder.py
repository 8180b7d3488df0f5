from clarifier.models.session import ConversationTurn, Domain, Role
from clarifier.services.prompt_builder import BRIEF_SECTIONS, EMPTY_HISTORY_PLACEHOLDER, build


def turn(role: Role, content: str) -> ConversationTurn:
    return ConversationTurn(role=role, content=content)


def test_renders_history_in_order():
    prompt = build(
        Domain.BUSINESS,
        [
            turn(Role.USER, "I want to start a business"),
            turn(Role.ASSISTANT, "What problem are you solving?"),
            turn(Role.USER, "Finding eco-friendly products"),
        ],
    )
    expected = (
        "User: I want to start a business\n\n"
        "Assistant: What problem are you solving?\n\n"
        "User: Finding eco-friendly products"
    )
    assert expected in prompt


def test_includes_every_section_heading():
    prompt = build(Domain.TECHNICAL, [])
    for section in BRIEF_SECTIONS:
        assert f"## {section}" in prompt
    assert prompt.index("## Core Goal") < prompt.index("## Success Criteria")


def test_empty_history_placeholder():
    assert EMPTY_HISTORY_PLACEHOLDER in build(Domain.PRODUCT, [])


def test_template_varies_by_domain():
    prompts = {build(domain, []) for domain in Domain}
    assert len(prompts) == len(Domain)
    assert "research question" in build(Domain.RESEARCH, [])


def test_long_history_is_not_truncated():
    history = [
        turn(Role.USER if i % 2 == 0 else Role.ASSISTANT, f"message number {i} marker-{i:03d}")
        for i in range(150)
    ]
    prompt = build(Domain.CREATIVE, history)
    for item in history:
        assert item.content in prompt
    assert prompt.index("marker-000") < prompt.index("marker-149")
