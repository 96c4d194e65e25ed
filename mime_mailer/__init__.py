# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Compose MIME email messages and deliver them over SMTP.

Features:
    - Plain, HTML and multipart/alternative bodies
    - Attachments in a multipart/mixed container
    - One-transaction SMTP delivery with STARTTLS and AUTH
    - Explicit TLS policy: no silent fallback to plaintext

Example::

    from mime_mailer import Address, Message, Sender

    msg = Message(from_=Address("Sender", "sender@example.com"), subject="Hi", body="hello")
    msg.add_to("Someone <someone@example.com>")
    await Sender("smtp.example.com:587").send_mail(msg)
"""

from .builder import BodyKind, Layout, MessageBuilder, classify_body, classify_layout, render_message
from .errors import (
    AttachmentReadError,
    AuthFailed,
    ConfigurationError,
    DataRejected,
    EncodingError,
    MailConnectionError,
    MailError,
    MissingSender,
    ProtocolError,
    RecipientRejected,
    ResourceError,
    SenderRejected,
    TLSUpgradeFailed,
)
from .models import Address, Attachment, Credentials, Envelope, Message
from .sender import Sender
from .smtp_session import SessionState, SMTPSession, TLSMode, TLSPolicy

__version__ = "0.1.0"

__all__ = [
    "Address",
    "Attachment",
    "AttachmentReadError",
    "AuthFailed",
    "BodyKind",
    "ConfigurationError",
    "Credentials",
    "DataRejected",
    "EncodingError",
    "Envelope",
    "Layout",
    "MailConnectionError",
    "MailError",
    "Message",
    "MessageBuilder",
    "MissingSender",
    "ProtocolError",
    "RecipientRejected",
    "ResourceError",
    "SMTPSession",
    "Sender",
    "SenderRejected",
    "SessionState",
    "TLSMode",
    "TLSPolicy",
    "TLSUpgradeFailed",
    "classify_body",
    "classify_layout",
    "render_message",
]
