# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Value types describing a message, its attachments and its SMTP envelope."""

from __future__ import annotations

import mimetypes
from dataclasses import dataclass, field
from email.utils import formataddr, parseaddr
from typing import BinaryIO, Dict, List, Optional, Union

from .errors import MissingSender

DEFAULT_CONTENT_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class Address:
    """A mailbox with an optional display name.

    Addresses are taken as given: nothing here validates the mailbox syntax.
    """

    name: str
    address: str

    @classmethod
    def parse(cls, value: str) -> "Address":
        """Split ``"Display Name <mailbox>"`` into an :class:`Address`."""
        name, address = parseaddr(value)
        if not address:
            # parseaddr gives up on unparsable input; keep it verbatim
            return cls("", value.strip())
        return cls(name, address)

    def __str__(self) -> str:
        return formataddr((self.name, self.address), charset="utf-8")


AddressLike = Union[Address, str]


def _coerce(value: AddressLike) -> Address:
    if isinstance(value, Address):
        return value
    return Address.parse(value)


@dataclass
class Attachment:
    """A file attached to a message.

    ``data`` is consumed exactly once while the message is rendered. The
    builder never seeks or closes it, so rendering the same message twice
    requires the caller to supply a fresh (or rewound) stream.
    """

    name: str
    data: BinaryIO
    content_type: str = ""

    def resolved_content_type(self) -> str:
        """Return ``content_type`` or a type guessed from the filename."""
        if self.content_type:
            return self.content_type
        guessed, _ = mimetypes.guess_type(self.name)
        return guessed or DEFAULT_CONTENT_TYPE


@dataclass
class Message:
    """Logical email message.

    ``body`` and ``html_body`` are optional: ``None`` means the part is absent,
    while an empty string is an empty part. ``headers`` maps header names to
    their values; a ``Date`` entry overrides the generated timestamp.
    """

    from_: Optional[Address] = None
    to: List[Address] = field(default_factory=list)
    cc: List[Address] = field(default_factory=list)
    bcc: List[Address] = field(default_factory=list)
    subject: str = ""
    body: Optional[str] = None
    html_body: Optional[str] = None
    attachments: List[Attachment] = field(default_factory=list)
    headers: Dict[str, List[str]] = field(default_factory=dict)

    def set_from(self, value: AddressLike) -> None:
        self.from_ = _coerce(value)

    def add_to(self, value: AddressLike) -> None:
        self.to.append(_coerce(value))

    def add_cc(self, value: AddressLike) -> None:
        self.cc.append(_coerce(value))

    def add_bcc(self, value: AddressLike) -> None:
        self.bcc.append(_coerce(value))

    def add_header(self, name: str, value: str) -> None:
        """Append ``value`` to the values of header ``name``."""
        self.headers.setdefault(name, []).append(value)


@dataclass(frozen=True)
class Envelope:
    """SMTP envelope: the MAIL FROM mailbox and every RCPT TO mailbox."""

    sender: str
    recipients: List[str]

    @classmethod
    def from_message(cls, message: Message) -> "Envelope":
        """Flatten To, Cc and Bcc (in that order) into the recipient list."""
        if message.from_ is None:
            raise MissingSender()
        recipients = [addr.address for addr in (*message.to, *message.cc, *message.bcc)]
        return cls(sender=message.from_.address, recipients=recipients)


@dataclass(frozen=True)
class Credentials:
    """Username and password used for SMTP AUTH."""

    username: str
    password: str = field(repr=False)
