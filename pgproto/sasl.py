"""Client side of the SCRAM-SHA-256 and SCRAM-SHA-256-PLUS SASL exchange."""

from __future__ import annotations

import base64
import binascii
import enum
import hashlib
import hmac
import secrets
import stringprep
import unicodedata
from dataclasses import dataclass
from typing import Callable

SCRAM_SHA_256 = "SCRAM-SHA-256"
SCRAM_SHA_256_PLUS = "SCRAM-SHA-256-PLUS"

NONCE_LENGTH = 24

_U32_MAX = 0xFFFF_FFFF


class ScramError(ValueError):
    """Raised when the SCRAM exchange fails or is driven out of order."""


_PROHIBITED = (
    stringprep.in_table_c12,
    stringprep.in_table_c21,
    stringprep.in_table_c22,
    stringprep.in_table_c3,
    stringprep.in_table_c4,
    stringprep.in_table_c5,
    stringprep.in_table_c6,
    stringprep.in_table_c7,
    stringprep.in_table_c8,
    stringprep.in_table_c9,
    stringprep.in_table_a1,
)


def _saslprep(text: str) -> str:
    if all(" " <= ch <= "~" for ch in text):
        return text

    mapped = "".join(
        " " if stringprep.in_table_c12(ch) else ch
        for ch in text
        if not stringprep.in_table_b1(ch)
    )
    prepared = unicodedata.normalize("NFKC", mapped)

    for ch in prepared:
        if any(check(ch) for check in _PROHIBITED):
            raise ValueError(f"prohibited character {ch!r}")

    if any(stringprep.in_table_d1(ch) for ch in prepared):
        if any(stringprep.in_table_d2(ch) for ch in prepared):
            raise ValueError("mixed bidirectional text")
        if not (stringprep.in_table_d1(prepared[0]) and stringprep.in_table_d1(prepared[-1])):
            raise ValueError("bidirectional text must start and end with RandAL characters")

    return prepared


def normalize(password: bytes) -> bytes:
    """Apply SASLprep when possible, otherwise return the raw password bytes.

    Passwords need not be valid UTF-8 nor free of prohibited characters, so
    either failure falls back to the bytes as given.
    """
    raw = bytes(password)
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError:
        return raw
    try:
        return _saslprep(text).encode("utf-8")
    except ValueError:
        return raw


def hi(password: bytes, salt: bytes, iterations: int) -> bytes:
    """The SCRAM ``Hi`` function (PBKDF2 with HMAC-SHA-256, 32-byte output)."""
    # Zero iterations yields the first block alone, as one iteration does.
    return hashlib.pbkdf2_hmac("sha256", bytes(password), bytes(salt), max(iterations, 1), 32)


def _hmac(key: bytes, data: bytes) -> bytes:
    return hmac.new(key, data, hashlib.sha256).digest()


def _b64decode(text: str) -> bytes:
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ScramError(str(exc)) from exc


class _BindingKind(enum.Enum):
    UNREQUESTED = "y,,"
    UNSUPPORTED = "n,,"
    TLS_SERVER_END_POINT = "p=tls-server-end-point,,"


@dataclass(frozen=True)
class ChannelBinding:
    """Channel binding configuration for a SCRAM exchange."""

    kind: _BindingKind
    signature: bytes = b""

    @classmethod
    def unrequested(cls) -> ChannelBinding:
        """The server did not request channel binding."""
        return cls(_BindingKind.UNREQUESTED)

    @classmethod
    def unsupported(cls) -> ChannelBinding:
        """The server requested channel binding but the client cannot provide it."""
        return cls(_BindingKind.UNSUPPORTED)

    @classmethod
    def tls_server_end_point(cls, signature: bytes) -> ChannelBinding:
        """Bind to the TLS channel with the ``tls-server-end-point`` method."""
        return cls(_BindingKind.TLS_SERVER_END_POINT, bytes(signature))

    def gs2_header(self) -> str:
        """The GS2 header that starts the client-first message."""
        return self.kind.value

    def cbind_data(self) -> bytes:
        """The channel binding data appended to the GS2 header."""
        if self.kind is _BindingKind.TLS_SERVER_END_POINT:
            return self.signature
        return b""


@dataclass(frozen=True)
class ServerFirstMessage:
    """The parsed ``server-first-message``."""

    nonce: str
    salt: str
    iteration_count: int


@dataclass(frozen=True)
class ServerFinalMessage:
    """The parsed ``server-final-message``: either an error or a verifier."""

    error: str | None = None
    verifier: str | None = None


def _is_printable(ch: str) -> bool:
    return "\x21" <= ch <= "\x2b" or "\x2d" <= ch <= "\x7e"


def _is_base64(ch: str) -> bool:
    return ch.isascii() and (ch.isalnum() or ch in "/+=")


def _is_digit(ch: str) -> bool:
    return "0" <= ch <= "9"


class _Parser:
    def __init__(self, text: str) -> None:
        self._text = text
        self._pos = 0

    def _byte_offset(self, index: int) -> int:
        return len(self._text[:index].encode("utf-8"))

    def _peek(self) -> str | None:
        return self._text[self._pos] if self._pos < len(self._text) else None

    def _eat(self, target: str) -> None:
        ch = self._peek()
        if ch is None:
            raise ScramError("unexpected EOF")
        if ch != target:
            raise ScramError(
                f"unexpected character at byte {self._byte_offset(self._pos)}: "
                f"expected `{target}` but got `{ch}"
            )
        self._pos += 1

    def _take_while(self, predicate: Callable[[str], bool]) -> str:
        start = self._pos
        while self._pos < len(self._text) and predicate(self._text[self._pos]):
            self._pos += 1
        return self._text[start:self._pos]

    def _key(self, name: str) -> None:
        self._eat(name)
        self._eat("=")

    def _number(self) -> int:
        digits = self._take_while(_is_digit)
        if not digits:
            raise ScramError("cannot parse integer from empty string")
        value = int(digits)
        if value > _U32_MAX:
            raise ScramError("number too large to fit in target type")
        return value

    def _eof(self) -> None:
        if self._pos < len(self._text):
            raise ScramError(f"unexpected trailing data at byte {self._byte_offset(self._pos)}")

    def server_first_message(self) -> ServerFirstMessage:
        self._key("r")
        nonce = self._take_while(_is_printable)
        self._eat(",")
        self._key("s")
        salt = self._take_while(_is_base64)
        self._eat(",")
        self._key("i")
        iteration_count = self._number()
        self._eof()
        return ServerFirstMessage(nonce, salt, iteration_count)

    def server_final_message(self) -> ServerFinalMessage:
        if self._peek() == "e":
            self._key("e")
            message = ServerFinalMessage(error=self._take_while(lambda ch: ch in "\0=,"))
        else:
            self._key("v")
            message = ServerFinalMessage(verifier=self._take_while(_is_base64))
        self._eof()
        return message


def parse_server_first_message(message: str) -> ServerFirstMessage:
    """Parse a ``server-first-message`` string."""
    return _Parser(message).server_first_message()


def parse_server_final_message(message: str) -> ServerFinalMessage:
    """Parse a ``server-final-message`` string."""
    return _Parser(message).server_final_message()


def _generate_nonce() -> str:
    chars = []
    for _ in range(NONCE_LENGTH):
        code = 0x21 + secrets.randbelow(0x7E - 0x21)
        if code == 0x2C:
            code = 0x7E
        chars.append(chr(code))
    return "".join(chars)


def _decode(message: bytes) -> str:
    try:
        return bytes(message).decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ScramError(str(exc)) from exc


@dataclass
class _AwaitingServerFirst:
    nonce: str
    password: bytes
    channel_binding: ChannelBinding


@dataclass
class _AwaitingServerFinal:
    salted_password: bytes
    auth_message: str


class ScramSha256:
    """Client state machine for SCRAM-SHA-256 authentication.

    Send :meth:`message` in a ``SASLInitialResponse``, pass the
    ``AuthenticationSASLContinue`` payload to :meth:`update`, send
    :meth:`message` again in a ``SASLResponse``, then pass the
    ``AuthenticationSASLFinal`` payload to :meth:`finish`.
    """

    def __init__(
        self,
        password: bytes,
        channel_binding: ChannelBinding,
        nonce: str | None = None,
    ) -> None:
        if nonce is None:
            nonce = _generate_nonce()
        self._message = f"{channel_binding.gs2_header()}n=,r={nonce}"
        self._state: _AwaitingServerFirst | _AwaitingServerFinal | None = _AwaitingServerFirst(
            nonce, normalize(password), channel_binding
        )

    def message(self) -> bytes:
        """The message to send to the server next."""
        if self._state is None:
            raise ScramError("invalid SCRAM state")
        return self._message.encode("utf-8")

    def update(self, message: bytes) -> None:
        """Process the server-first message (``AuthenticationSASLContinue``)."""
        state, self._state = self._state, None
        if not isinstance(state, _AwaitingServerFirst):
            raise ScramError("invalid SCRAM state")

        text = _decode(message)
        parsed = parse_server_first_message(text)

        if not parsed.nonce.startswith(state.nonce):
            raise ScramError("invalid nonce")

        salt = _b64decode(parsed.salt)
        salted_password = hi(state.password, salt, parsed.iteration_count)

        client_key = _hmac(salted_password, b"Client Key")
        stored_key = hashlib.sha256(client_key).digest()

        binding = state.channel_binding
        cbind_input = base64.b64encode(
            binding.gs2_header().encode("ascii") + binding.cbind_data()
        ).decode("ascii")

        without_proof = f"c={cbind_input},r={parsed.nonce}"
        auth_message = f"n=,r={state.nonce},{text},{without_proof}"

        client_signature = _hmac(stored_key, auth_message.encode("utf-8"))
        client_proof = bytes(k ^ s for k, s in zip(client_key, client_signature))

        self._message = f"{without_proof},p={base64.b64encode(client_proof).decode('ascii')}"
        self._state = _AwaitingServerFinal(salted_password, auth_message)

    def finish(self, message: bytes) -> None:
        """Verify the server-final message (``AuthenticationSASLFinal``).

        Authentication has succeeded only if this returns without raising.
        """
        state, self._state = self._state, None
        if not isinstance(state, _AwaitingServerFinal):
            raise ScramError("invalid SCRAM state")

        parsed = parse_server_final_message(_decode(message))
        if parsed.error is not None:
            raise ScramError(f"SCRAM error: {parsed.error}")

        verifier = _b64decode(parsed.verifier or "")
        server_key = _hmac(state.salted_password, b"Server Key")
        expected = _hmac(server_key, state.auth_message.encode("utf-8"))
        if not hmac.compare_digest(expected, verifier):
            raise ScramError("SCRAM verification error")