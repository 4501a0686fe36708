import pytest

from repo_chat.agent.rules import EMPTY_ANSWER, IDENTITY_ANSWER, match_rule


@pytest.mark.parametrize(
    ("question", "rule"),
    [
        ("hello!", "greeting"),
        ("Good morning team", "greeting"),
        ("Who are you?", "self_identity"),
        ("What is CASSIAN?", "app_identity"),
        ("What can you do?", "help"),
        ("How do I upload a repo?", "upload_help"),
        ("How does the chat work?", "chat_help"),
        ("the chat is not working", "chat_troubleshooting"),
        ("thanks", "thanks"),
        ("For Narnia!", "easter_egg"),
        ("bye", "farewell"),
        ("Where can I find my summaries?", "navigation"),
        ("show me the endpoints", "navigation"),
    ],
)
def test_canned_questions_match(question: str, rule: str) -> None:
    matched = match_rule(question)
    assert matched is not None
    assert matched.rule == rule


@pytest.mark.parametrize(
    "question",
    [
        "How does the chunker split files?",
        "Explain the parse function in utils/parse.go",
        "what does main.py import?",
        "How does error handling work in the API?",
        "Where is the config loaded?",
    ],
)
def test_code_questions_fall_through(question: str) -> None:
    assert match_rule(question) is None


def test_blank_question_gets_empty_answer() -> None:
    matched = match_rule("   \n")
    assert matched is not None
    assert matched.answer == EMPTY_ANSWER


def test_identity_answer_names_the_assistant() -> None:
    matched = match_rule("who are you")
    assert matched is not None
    assert matched.answer == IDENTITY_ANSWER
    assert "CASSIAN" in matched.answer
