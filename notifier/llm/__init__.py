"""Text-completion backends and reply parsing."""

from notifier.llm.completion import (
    Completion,
    CompletionService,
    ParsedReply,
    TextCompletion,
    UnparsableReply,
    parse_json_reply,
)

__all__ = [
    "Completion",
    "CompletionService",
    "ParsedReply",
    "TextCompletion",
    "UnparsableReply",
    "parse_json_reply",
]
