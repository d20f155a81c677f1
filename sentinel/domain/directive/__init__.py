from .directive_parser import DirectiveParser, ParsedReply, DIRECTIVE_MARKER, build_confirmation_prompt
from .command_codec import CommandCodec, Base64CommandCodec, Base32CommandCodec, get_codec

__all__ = [
    "DirectiveParser", "ParsedReply", "DIRECTIVE_MARKER", "build_confirmation_prompt",
    "CommandCodec", "Base64CommandCodec", "Base32CommandCodec", "get_codec",
]
