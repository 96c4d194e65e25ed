# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Exceptions raised while rendering or delivering a message.

Every error carries a stable ``code`` string so callers can branch on the
failure kind without matching class names. SMTP level failures additionally
expose the server reply code as ``smtp_code`` when one was received.
"""

from __future__ import annotations

from typing import Optional


class MailError(RuntimeError):
    """Base class for every error raised by :mod:`mime_mailer`."""

    code = "mail_error"

    def __init__(self, message: str, *, smtp_code: Optional[int] = None):
        super().__init__(message)
        self.smtp_code = smtp_code


# ---------------------------------------------------------------- configuration
class ConfigurationError(MailError):
    """Raised when the message or the sender settings are incomplete."""

    code = "configuration_error"


class MissingSender(ConfigurationError):
    """Raised when a message without a From address is rendered or sent."""

    code = "missing_sender"

    def __init__(self, message: str = "Message has no From address"):
        super().__init__(message)


# -------------------------------------------------------------------- resources
class ResourceError(MailError):
    code = "resource_error"


class AttachmentReadError(ResourceError):
    """Raised when an attachment stream cannot be read."""

    code = "attachment_read_error"

    def __init__(self, filename: str, reason: str):
        super().__init__(f"Cannot read attachment {filename!r}: {reason}")
        self.filename = filename


class EncodingError(MailError):
    """Raised when the MIME tree cannot be assembled."""

    code = "encoding_error"


# --------------------------------------------------------------------- protocol
class ProtocolError(MailError):
    """Raised when the SMTP server rejects a step of the transaction."""

    code = "protocol_error"


class TLSUpgradeFailed(ProtocolError):
    code = "tls_upgrade_failed"


class AuthFailed(ProtocolError):
    code = "auth_failed"


class SenderRejected(ProtocolError):
    code = "sender_rejected"


class RecipientRejected(ProtocolError):
    """Raised on the first refused recipient; DATA is never issued afterwards."""

    code = "recipient_rejected"

    def __init__(self, recipient: str, index: int, reason: str, *, smtp_code: Optional[int] = None):
        super().__init__(f"Recipient {recipient!r} rejected: {reason}", smtp_code=smtp_code)
        self.recipient = recipient
        self.index = index


class DataRejected(ProtocolError):
    code = "data_rejected"


class MailConnectionError(MailError):
    """Raised when the server cannot be reached or the transport drops."""

    code = "connection_error"
