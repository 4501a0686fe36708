"""Canned answers for high-frequency trivial questions, checked before any model call."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

logger = logging.getLogger(__name__)

ASSISTANT_NAME = "CASSIAN"

IDENTITY_ANSWER = (
    f"I am **{ASSISTANT_NAME}**, the **Code Analysis System for Software Intelligence "
    "and Navigation**. I help you explore, understand, and interact with software "
    "systems intelligently."
)

EMPTY_ANSWER = "Looks like an empty message! Type a question and I'll do my best to help."


@dataclass(slots=True, frozen=True)
class Rule:
    """A named set of patterns sharing one canned answer."""

    name: str
    patterns: tuple[re.Pattern[str], ...]
    answer: str

    def matches(self, question: str) -> bool:
        return any(pattern.search(question) for pattern in self.patterns)


@dataclass(slots=True, frozen=True)
class RuleMatch:
    rule: str
    answer: str


def _rule(name: str, patterns: list[str], answer: str) -> Rule:
    return Rule(
        name=name,
        patterns=tuple(re.compile(p, re.IGNORECASE) for p in patterns),
        answer=answer,
    )


# Order matters: the first matching rule wins.
RULES: tuple[Rule, ...] = (
    _rule(
        "easter_egg",
        [r"^for narnia[\s!?.]*$", r"^narnia[\s!?.]*$", r"^caspian[\s!?.]*$", r"^aslan[\s!?.]*$"],
        "I walk the path of knowledge and courage. Every system has its hidden "
        "kingdom. Explore, and you will discover.",
    ),
    _rule(
        "greeting",
        [
            r"^(hi|hello|hey|howdy|yo|hiya|sup|what'?s up)[\s!?.]*$",
            r"^good (morning|afternoon|evening)",
            r"^(greetings|salutations)",
        ],
        f"Hey! I'm **{ASSISTANT_NAME}**. I can help you navigate, explain features, "
        "troubleshoot issues, or answer questions about your code. What do you need?",
    ),
    _rule(
        "app_identity",
        [
            r"what (is|does) cassian",
            r"what('s| is) cassian",
            r"cassian stand for",
            r"what (is|does) (this|the) app",
            r"tell me about (this app|cassian)",
            r"explain (this app|cassian)",
        ],
        IDENTITY_ANSWER,
    ),
    _rule(
        "self_identity",
        [
            r"who are you",
            r"what are you",
            r"are you (an? )?(ai|bot|assistant|robot)",
            r"tell me about yourself",
        ],
        IDENTITY_ANSWER,
    ),
    _rule(
        "navigation",
        [
            r"^how (do i|to|can i) (navigate|get around)",
            r"^where (do|can) i (find|see) (my )?(repos|repositories|summaries|summary|uploads|traces)",
            r"^(show|list) (me )?(the |your )?(endpoints|routes)",
        ],
        "Here's where things live:\n\n"
        "- **POST /upload**, **/upload/archive**, **/upload/text**: ingest a repository\n"
        "- **GET /repos/{repo_id}/summary**: per-file summaries and the architecture overview\n"
        "- **POST /chat**: ask about a specific repository\n"
        "- **POST /assistant-chat**: talk to me about anything else\n"
        "- **GET /traces** and **GET /metrics**: recent answers and usage numbers",
    ),
    _rule(
        "upload_help",
        [
            r"^how (do i|to|can i) (upload|ingest)",
            r"^how (do|can) i (add|submit|import) (a |my )?(repo|repository|code|project)",
            r"^where (do|can) i (upload|import)",
        ],
        "Here's how to ingest a repository:\n\n"
        "1. Send a public GitHub HTTPS URL, a .zip archive, or a pasted snippet\n"
        "2. I clone or extract it, parse the text files and split them into chunks\n"
        "3. I generate per-file summaries and an architecture overview\n"
        "4. Then you can ask questions about the code using the returned repository id",
    ),
    _rule(
        "chat_help",
        [
            r"how (does|do) (the )?(repo )?chat work",
            r"how (to|do i) (use )?(the )?(repo )?chat",
            r"how (to|can i) ask.*(question|about|code)",
            r"what can i ask",
        ],
        "Code chat works like this:\n\n"
        "1. Pick a repository you ingested\n"
        "2. Ask a question in plain English\n"
        "3. I rank the code chunks most relevant to your question and answer from them\n\n"
        "Mentioning a file name or a function name helps me find the right code.",
    ),
    _rule(
        "help",
        [
            r"^help[\s!?.]*$",
            r"what can you (do|help with)",
            r"how (can you|do you) help",
            r"what (are your|do you have) (features|capabilities)",
        ],
        "I can help with:\n\n"
        "- **Ingestion**: loading repositories from GitHub, zip archives or snippets\n"
        "- **Summaries**: per-file summaries and architecture overviews\n"
        "- **Code chat**: answering questions grounded in your code\n"
        "- **Troubleshooting**: common issues and fixes\n\n"
        "Just ask away!",
    ),
    _rule(
        "thanks",
        [r"^(thanks|thank you|thx|ty|cheers)[\s!?.]*$", r"^(much appreciated|appreciate it)"],
        "You're welcome! Let me know if you need anything else.",
    ),
    _rule(
        "upload_troubleshooting",
        [
            r"^(my |the )?upload(ing)?\b.*\b(fails?|failed|failing|not working|broken|stuck)",
            r"(can'?t|cannot|unable to) upload",
        ],
        "If ingestion is failing:\n\n"
        "1. **GitHub URLs**: make sure the repository is public and the URL uses https://github.com/owner/repo\n"
        "2. **Zip files**: make sure the file is a valid .zip archive\n"
        "3. **Retry**: cloning can fail transiently; wait a moment and try again",
    ),
    _rule(
        "chat_troubleshooting",
        [
            r"^(the )?chat\b.*\b(not working|broken|fails?|failed|failing|empty|no response)",
            r"(can'?t|cannot) (get|receive) (an? )?answer",
            r"\bai\b.*(not responding|down|broken|error)",
        ],
        "If chat isn't responding:\n\n"
        "1. Make sure the repository was ingested; stored repositories expire after an hour\n"
        "2. The model service may be busy; wait 30 seconds and retry\n"
        "3. If the problem persists, ingest the repository again",
    ),
    _rule(
        "troubleshooting",
        [
            r"^(something'?s? )?(not working|broken|error|bug)",
            r"i('m| am) (having|getting) (an? )?(error|issue|problem)",
            r"^(how (do i|to) )?troubleshoot",
        ],
        "General troubleshooting:\n\n"
        "1. **Retry** the request; transient failures usually clear up\n"
        "2. **Re-ingest**: repository data expires after a while\n"
        "3. Tell me the specific error you're seeing and I can help further!",
    ),
    _rule(
        "farewell",
        [r"^(bye|goodbye|see you|later|cya|gtg)[\s!?.]*$"],
        "See you later! I'll be right here if you need me.",
    ),
)


def match_rule(question: str, rules: tuple[Rule, ...] = RULES) -> RuleMatch | None:
    """Return the first rule matching the trimmed question, or None."""

    trimmed = question.strip()
    if not trimmed:
        return RuleMatch(rule="empty", answer=EMPTY_ANSWER)

    for rule in rules:
        if rule.matches(trimmed):
            logger.debug("Rule %s matched question %r", rule.name, trimmed[:80])
            return RuleMatch(rule=rule.name, answer=rule.answer)
    return None
