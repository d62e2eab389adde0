"""Keyword command dispatch for recognized transcripts."""

import logging
from dataclasses import dataclass
from typing import Callable, Sequence, Tuple

logger = logging.getLogger(__name__)


CommandHandler = Callable[[str], str]

GREETING_REPLY = "Hello! I am JARVIS, your personal assistant. How can I help you?"
CPU_REPLY = "You can see your CPU usage in the dashboard above."
MEMORY_REPLY = "Your memory usage is displayed in the metrics section."


@dataclass(frozen=True)
class CommandRule:
    """Reply used when the lowercased transcript contains any of the keywords."""
    name: str
    keywords: Tuple[str, ...]
    reply: str

    def matches(self, text: str) -> bool:
        return any(keyword in text for keyword in self.keywords)


def echo_reply(transcript: str) -> str:
    return f"You said: {transcript}. I'm still learning how to respond!"


DEFAULT_RULES: Tuple[CommandRule, ...] = (
    CommandRule("greeting", ("hello", "hi"), GREETING_REPLY),
    CommandRule("cpu", ("cpu",), CPU_REPLY),
    CommandRule("memory", ("memory", "ram"), MEMORY_REPLY),
)


class CommandDispatcher:
    """First-match-wins dispatch over an ordered list of keyword rules.

    Calling the dispatcher has no side effects, so any other
    ``Callable[[str], str]`` can take its place in a VoiceSession.
    """

    def __init__(self, rules: Sequence[CommandRule] = DEFAULT_RULES,
                 fallback: CommandHandler = echo_reply):
        self.rules = tuple(rules)
        self.fallback = fallback

    def __call__(self, transcript: str) -> str:
        text = transcript.lower()
        for rule in self.rules:
            if rule.matches(text):
                logger.debug(f"Transcript matched command '{rule.name}'")
                return rule.reply
        return self.fallback(transcript)


dispatch_command: CommandHandler = CommandDispatcher()
