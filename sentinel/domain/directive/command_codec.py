"""
Transport-safe encodings for pending commands.

Confirmation payloads travel through channels that only carry a restricted
alphabet, so the command is shipped as an opaque token and decoded again when
the operator answers. Any reversible binary-to-text scheme fits behind
``CommandCodec``.
"""

import base64
import binascii
from abc import ABC, abstractmethod
from typing import Dict, Type

from sentinel.domain.models.errors import EncodingError


class CommandCodec(ABC):
    """Reversible bytes <-> text encoding"""

    name: str = ""

    @abstractmethod
    def encode_bytes(self, data: bytes) -> str:
        pass

    @abstractmethod
    def decode_bytes(self, token: str) -> bytes:
        """Decode a token, raising EncodingError when it is malformed"""
        pass

    def encode(self, command: str) -> str:
        return self.encode_bytes(command.encode("utf-8"))

    def decode(self, token: str) -> str:
        data = self.decode_bytes(token)
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise EncodingError(f"Invalid command encoding: {e}") from e


class Base64CommandCodec(CommandCodec):
    """URL-safe base64 with padding"""

    name = "base64"

    def encode_bytes(self, data: bytes) -> str:
        return base64.urlsafe_b64encode(data).decode("ascii")

    def decode_bytes(self, token: str) -> bytes:
        try:
            return base64.b64decode(token.encode("ascii"), altchars=b"-_", validate=True)
        except (binascii.Error, ValueError) as e:
            raise EncodingError(f"Decode error: {e}") from e


class Base32CommandCodec(CommandCodec):
    """RFC 4648 base32, for transports that fold case"""

    name = "base32"

    def encode_bytes(self, data: bytes) -> str:
        return base64.b32encode(data).decode("ascii")

    def decode_bytes(self, token: str) -> bytes:
        try:
            return base64.b32decode(token.encode("ascii"), casefold=True)
        except (binascii.Error, ValueError) as e:
            raise EncodingError(f"Decode error: {e}") from e


CODECS: Dict[str, Type[CommandCodec]] = {
    Base64CommandCodec.name: Base64CommandCodec,
    Base32CommandCodec.name: Base32CommandCodec,
}


def get_codec(name: str) -> CommandCodec:
    try:
        return CODECS[name.strip().lower()]()
    except KeyError:
        raise ValueError(f"Unknown command codec '{name}'. Available: {', '.join(sorted(CODECS))}")
