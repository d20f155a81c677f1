import re
from typing import NamedTuple, Optional, Tuple

DIRECTIVE_MARKER = "RUN:"

# Markup the model sometimes wraps around the command
_MARKUP_TAGS: Tuple[str, ...] = ("<code>", "</code>", "<b>", "</b>", "<i>", "</i>", "<pre>", "</pre>")
_FENCE = "```"
_FENCE_LANGUAGE = re.compile(r"[A-Za-z0-9_+\-]*")


class ParsedReply(NamedTuple):
    preamble: str
    command: Optional[str]

    @property
    def has_directive(self) -> bool:
        return self.command is not None


class DirectiveParser:
    """Extracts an embedded RUN: directive from free-form model text.

    Only the first marker is honoured. Anything after it, including further
    markers, belongs to the command.
    """

    def __init__(self, marker: str = DIRECTIVE_MARKER):
        self.marker = marker

    def parse(self, reply: str) -> ParsedReply:
        index = reply.find(self.marker)
        if index < 0:
            return ParsedReply(reply, None)

        preamble = reply[:index].strip()
        command = self.strip_markup(reply[index + len(self.marker):])

        if not command:
            return ParsedReply(reply, None)

        return ParsedReply(preamble, command)

    @staticmethod
    def strip_markup(raw: str) -> str:
        """Remove HTML tags, code fences and inline-code backticks"""
        command = raw
        for tag in _MARKUP_TAGS:
            command = command.replace(tag, "")
        command = command.strip()

        if command.startswith(_FENCE):
            command = command[len(_FENCE):]
            first_line, newline, rest = command.partition("\n")
            if newline and _FENCE_LANGUAGE.fullmatch(first_line.strip()):
                command = rest
            command = command.rstrip()
            if command.endswith(_FENCE):
                command = command[:-len(_FENCE)]

        return command.strip().strip("`").strip()


def build_confirmation_prompt(preamble: str, command: str) -> str:
    if not preamble.strip():
        return f"AI suggests running: `{command}`"
    return f"{preamble.strip()}\n\nRunning command: `{command}`"
