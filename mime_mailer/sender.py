# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Sender facade: render a message, then deliver it in one SMTP session."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from .builder import MessageBuilder
from .logger import get_logger
from .models import Credentials, Envelope, Message
from .smtp_session import DEFAULT_TIMEOUT, SMTPSession, TLSPolicy, parse_address

if TYPE_CHECKING:
    from .config_loader import SenderSettings

logger = get_logger(__name__)


class Sender:
    """Bind server address, credentials and TLS policy for repeated sends.

    Each :meth:`send_mail` call renders the message to memory, then dials a
    new connection; nothing is shared between sends.
    """

    def __init__(
        self,
        address: str,
        credentials: Optional[Credentials] = None,
        tls: Optional[TLSPolicy] = None,
        *,
        timeout: Optional[float] = DEFAULT_TIMEOUT,
        builder: Optional[MessageBuilder] = None,
    ):
        self.hostname, self.port = parse_address(address)
        self.credentials = credentials
        self.tls = tls
        self.timeout = timeout
        self.builder = builder or MessageBuilder()

    @classmethod
    def from_settings(cls, settings: "SenderSettings") -> "Sender":
        return cls(
            f"{settings.host}:{settings.port}",
            settings.credentials(),
            settings.tls_policy(),
            timeout=settings.timeout,
        )

    def new_session(self) -> SMTPSession:
        return SMTPSession(
            self.hostname,
            self.port,
            credentials=self.credentials,
            tls=self.tls,
            timeout=self.timeout,
        )

    async def send_mail(self, message: Message) -> None:
        """Render ``message`` and deliver it to every To, Cc and Bcc recipient."""
        payload = self.builder.render(message)
        envelope = Envelope.from_message(message)
        await self.new_session().deliver(envelope, payload)
