# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Render a :class:`~mime_mailer.models.Message` into MIME bytes.

The shape of the MIME tree depends only on three facts about the message:
whether it has a plain body, an HTML body and attachments. The decision is
taken in two explicit classification steps:

- :func:`classify_body` picks the body part (plain, HTML, alternative or the
  synthesized empty plain part);
- :func:`classify_layout` decides whether the body part is the whole message
  (``BARE``) or the first child of a ``multipart/mixed`` container (``MIXED``).

Part encodings are fixed: plain text is quoted-printable, HTML and attachments
are base64. Rendering reads each attachment stream exactly once.

Example::

    from mime_mailer import Address, Message, render_message

    msg = Message(from_=Address("Sender", "sender@example.com"), body="hello")
    msg.add_to("Someone <to@example.com>")
    raw = render_message(msg)
"""

from __future__ import annotations

import base64
import quopri
import secrets
from datetime import datetime, timezone
from email import policy as email_policy
from email.errors import HeaderParseError
from email import headerregistry
from email.headerregistry import AddressHeader, HeaderRegistry, UnstructuredHeader
from email.message import EmailMessage, MIMEPart
from email.utils import format_datetime
from enum import Enum
from typing import Any, List, Optional, Sequence, Tuple

from .errors import AttachmentReadError, EncodingError, MailError, MissingSender
from .logger import get_logger
from .models import Address, Attachment, Message

logger = get_logger(__name__)

TEXT_CHARSET = "utf-8"
BOUNDARY_PREFIX = "=_"

# Address lists are structured so display names keep their quoting once
# RFC 2047 encoded; everything else, Date included, is written as assembled.
ADDRESS_HEADERS = ("from", "to", "cc", "reply-to", "sender")


def _header_registry() -> HeaderRegistry:
    registry = HeaderRegistry(default_class=UnstructuredHeader, use_default_map=False)
    for name in ADDRESS_HEADERS:
        registry.map_to_type(name, AddressHeader)
    return registry


RENDER_POLICY = email_policy.SMTP.clone(header_factory=_header_registry())

# Synthesized top-level headers a caller-supplied entry replaces in place.
_REPLACEABLE = ("from", "to", "cc", "subject", "mime-version", "date")


class BodyKind(str, Enum):
    """Which body part a message renders to."""

    PLAIN = "plain"
    HTML = "html"
    ALTERNATIVE = "alternative"
    EMPTY_PLAIN = "empty_plain"


class Layout(str, Enum):
    """Whether the body part is wrapped in a ``multipart/mixed`` container."""

    BARE = "bare"
    MIXED = "mixed"


def classify_body(message: Message) -> BodyKind:
    has_plain = message.body is not None
    has_html = message.html_body is not None
    if has_plain and has_html:
        return BodyKind.ALTERNATIVE
    if has_html:
        return BodyKind.HTML
    if has_plain:
        return BodyKind.PLAIN
    return BodyKind.EMPTY_PLAIN


def classify_layout(message: Message) -> Layout:
    return Layout.MIXED if message.attachments else Layout.BARE


def new_boundary() -> str:
    """Return a fresh boundary token.

    The ``=_`` prefix can never occur in quoted-printable or base64 output, so
    the token cannot collide with any encoded part content.
    """
    return BOUNDARY_PREFIX + secrets.token_hex(15)


def format_date(moment: Optional[datetime] = None) -> str:
    """Format ``moment`` (default: now) as an RFC 5322 date in UTC."""
    moment = moment or datetime.now(timezone.utc)
    return format_datetime(moment.astimezone(timezone.utc), usegmt=True)


class MessageBuilder:
    """Assemble the MIME tree for a message and serialize it.

    The builder keeps no state between calls; a single instance can render
    any number of messages, including concurrently, as long as two renders
    never share the same attachment streams.
    """

    def __init__(self, policy=RENDER_POLICY):
        self.policy = policy

    # ------------------------------------------------------------------ public
    def render(self, message: Message) -> bytes:
        """Return the CRLF terminated wire representation of ``message``."""
        email_message = self.build(message)
        try:
            raw = email_message.as_bytes(policy=self.policy)
        except (TypeError, ValueError) as exc:
            raise EncodingError(f"Cannot serialize message: {exc}") from exc
        logger.debug("Rendered message (%d bytes)", len(raw))
        return raw

    def build(self, message: Message) -> EmailMessage:
        """Return the assembled :class:`EmailMessage` for ``message``."""
        if message.from_ is None:
            raise MissingSender()

        body_kind = classify_body(message)
        layout = classify_layout(message)
        logger.debug(
            "Building message: body=%s layout=%s attachments=%d",
            body_kind.value,
            layout.value,
            len(message.attachments),
        )

        root = EmailMessage(policy=self.policy)
        for name, value in self._top_level_headers(message):
            self._set_header(root, name, value)

        try:
            if layout is Layout.MIXED:
                root.make_mixed(boundary=new_boundary())
                body = MIMEPart(policy=self.policy)
                self._fill_body(body, body_kind, message)
                root.attach(body)
                for attachment in message.attachments:
                    root.attach(self._attachment_part(attachment))
            else:
                self._fill_body(root, body_kind, message)
        except (TypeError, ValueError) as exc:
            raise EncodingError(f"Cannot assemble MIME structure: {exc}") from exc
        return root

    # ----------------------------------------------------------------- headers
    def _top_level_headers(self, message: Message) -> List[Tuple[str, Any]]:
        """Return the ordered top-level headers, overrides already applied.

        Bcc is never part of the result; a caller-supplied Bcc entry is dropped.
        """
        synthesized: List[Tuple[str, Any]] = [("From", _mailboxes([message.from_]))]
        if message.to:
            synthesized.append(("To", _mailboxes(message.to)))
        if message.cc:
            synthesized.append(("Cc", _mailboxes(message.cc)))
        synthesized.append(("Subject", message.subject))
        synthesized.append(("MIME-Version", "1.0"))
        synthesized.append(("Date", format_date()))

        slots: List[List[Tuple[str, Any]]] = [[item] for item in synthesized]
        slot_index = {name.lower(): idx for idx, (name, _) in enumerate(synthesized)}
        extra: List[Tuple[str, Any]] = []

        for name, values in message.headers.items():
            key = name.lower()
            if key == "bcc":
                logger.warning("Dropping Bcc header: Bcc recipients only belong to the envelope")
                continue
            if key.startswith("content-"):
                logger.warning("Dropping %s header: content headers are generated", name)
                continue
            pairs = [(name, value) for value in values]
            if key in _REPLACEABLE:
                if key in slot_index:
                    slots[slot_index[key]] = pairs
                else:
                    # To/Cc left out because the list was empty
                    extra.extend(pairs)
                continue
            extra.extend(pairs)

        headers = [pair for slot in slots for pair in slot]
        return headers + extra

    def _set_header(self, part: MIMEPart, name: str, value: Any) -> None:
        try:
            part[name] = value
        except (ValueError, HeaderParseError) as exc:
            raise EncodingError(f"Invalid {name} header: {exc}") from exc

    # ------------------------------------------------------------------- parts
    def _fill_body(self, part: MIMEPart, kind: BodyKind, message: Message) -> None:
        """Turn ``part`` into the body part selected by ``kind``."""
        if kind is BodyKind.ALTERNATIVE:
            part.make_alternative(boundary=new_boundary())
            plain = MIMEPart(policy=self.policy)
            self._set_plain(plain, message.body or "")
            html = MIMEPart(policy=self.policy)
            self._set_html(html, message.html_body or "")
            part.attach(plain)
            part.attach(html)
        elif kind is BodyKind.HTML:
            self._set_html(part, message.html_body or "")
        elif kind is BodyKind.PLAIN:
            self._set_plain(part, message.body or "")
        elif kind is BodyKind.EMPTY_PLAIN:
            self._set_plain(part, "")
        else:
            raise EncodingError(f"Unknown body kind: {kind!r}")

    def _set_plain(self, part: MIMEPart, text: str) -> None:
        part["Content-Type"] = f'text/plain; charset="{TEXT_CHARSET}"'
        part["Content-Transfer-Encoding"] = "quoted-printable"
        part.set_payload(quopri.encodestring(text.encode(TEXT_CHARSET)).decode("ascii"))

    def _set_html(self, part: MIMEPart, html: str) -> None:
        part["Content-Type"] = f'text/html; charset="{TEXT_CHARSET}"'
        part["Content-Transfer-Encoding"] = "base64"
        part.set_payload(_base64_lines(html.encode(TEXT_CHARSET)))

    def _attachment_part(self, attachment: Attachment) -> MIMEPart:
        payload = _read_attachment(attachment)
        part = MIMEPart(policy=self.policy)
        part["Content-Type"] = attachment.resolved_content_type()
        part["Content-Transfer-Encoding"] = "base64"
        part.add_header("Content-Disposition", "attachment", filename=attachment.name)
        part.set_payload(_base64_lines(payload))
        return part


def _mailboxes(addresses: Sequence[Address]) -> List[headerregistry.Address]:
    try:
        return [
            headerregistry.Address(display_name=addr.name, addr_spec=addr.address)
            for addr in addresses
        ]
    except (TypeError, ValueError, HeaderParseError) as exc:
        raise EncodingError(f"Cannot encode address: {exc}") from exc


def _base64_lines(data: bytes) -> str:
    # encodebytes wraps at 76 characters, the MIME line limit
    return base64.encodebytes(data).decode("ascii")


def _read_attachment(attachment: Attachment) -> bytes:
    """Drain the attachment stream; the stream is neither rewound nor closed."""
    try:
        payload = attachment.data.read()
    except MailError:
        raise
    except Exception as exc:
        raise AttachmentReadError(attachment.name, str(exc)) from exc
    if isinstance(payload, str):
        payload = payload.encode(TEXT_CHARSET)
    if not isinstance(payload, (bytes, bytearray)):
        raise AttachmentReadError(attachment.name, f"stream returned {type(payload).__name__}")
    return bytes(payload)


def render_message(message: Message) -> bytes:
    """Shortcut for ``MessageBuilder().render(message)``."""
    return MessageBuilder().render(message)
