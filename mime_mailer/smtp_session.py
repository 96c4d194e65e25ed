# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""One SMTP transaction over one freshly dialed connection.

:class:`SMTPSession` walks a strictly sequential state machine::

    CONNECTED -> TLS_NEGOTIATED? -> AUTHENTICATED? -> ENVELOPE_SENT -> DATA_SENT -> CLOSED

and aborts on the first failure. The connection is closed on every exit
path. Nothing is retried here: a failed send must be retried by the caller.
"""

from __future__ import annotations

import asyncio
import ssl
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple

import aiosmtplib

from .errors import (
    AuthFailed,
    DataRejected,
    MailConnectionError,
    MailError,
    ProtocolError,
    RecipientRejected,
    SenderRejected,
    TLSUpgradeFailed,
)
from .logger import get_logger
from .models import Credentials, Envelope

logger = get_logger(__name__)

DEFAULT_PORT = 25
DEFAULT_TIMEOUT = 60.0

# Transport level failures: the server went away or never answered in time.
_TRANSPORT_ERRORS = (
    aiosmtplib.SMTPServerDisconnected,
    aiosmtplib.SMTPTimeoutError,
    asyncio.TimeoutError,
    OSError,
)


class TLSMode(str, Enum):
    """How the session secures the connection."""

    OPPORTUNISTIC = "opportunistic"  # STARTTLS when advertised
    REQUIRED = "required"  # STARTTLS or abort
    IMPLICIT = "implicit"  # TLS from the first byte (port 465)


@dataclass(frozen=True)
class TLSPolicy:
    """Caller-visible TLS settings.

    A STARTTLS upgrade that was attempted and failed always aborts the
    session, whatever the mode: there is no fallback to plaintext.
    ``context`` defaults to the transport's certificate-verifying context.
    """

    mode: TLSMode = TLSMode.OPPORTUNISTIC
    context: Optional[ssl.SSLContext] = None


DEFAULT_TLS_POLICY = TLSPolicy()


class SessionState(str, Enum):
    NEW = "new"
    CONNECTED = "connected"
    TLS_NEGOTIATED = "tls_negotiated"
    AUTHENTICATED = "authenticated"
    ENVELOPE_SENT = "envelope_sent"
    DATA_SENT = "data_sent"
    CLOSED = "closed"


def parse_address(address: str, default_port: int = DEFAULT_PORT) -> Tuple[str, int]:
    """Split ``"host:port"`` (or ``"[v6]:port"``) into hostname and port."""
    host, sep, port = address.rpartition(":")
    if not sep or "]" in port:
        return address.strip("[]"), default_port
    try:
        return host.strip("[]"), int(port)
    except ValueError as exc:
        raise ValueError(f"Invalid port in SMTP address {address!r}") from exc


def _smtp_code(exc: Exception) -> Optional[int]:
    return getattr(exc, "code", None)


class SMTPSession:
    """Deliver one rendered message to one server."""

    def __init__(
        self,
        hostname: str,
        port: int = DEFAULT_PORT,
        *,
        credentials: Optional[Credentials] = None,
        tls: Optional[TLSPolicy] = None,
        timeout: Optional[float] = DEFAULT_TIMEOUT,
    ):
        self.hostname = hostname
        self.port = port
        self.credentials = credentials
        self.tls = tls or DEFAULT_TLS_POLICY
        self.timeout = timeout
        self.state = SessionState.NEW

    @classmethod
    def from_address(cls, address: str, **kwargs: Any) -> "SMTPSession":
        hostname, port = parse_address(address)
        return cls(hostname, port, **kwargs)

    @property
    def server(self) -> str:
        return f"{self.hostname}:{self.port}"

    async def deliver(self, envelope: Envelope, payload: bytes) -> None:
        """Run the whole transaction for ``envelope`` carrying ``payload``."""
        smtp = await self._connect()
        try:
            await self._run(smtp, envelope, payload)
        finally:
            self._close(smtp)
        logger.info(
            "Delivered message from %s to %d recipient(s) via %s",
            envelope.sender,
            len(envelope.recipients),
            self.server,
        )

    # ------------------------------------------------------------------ stages
    async def _connect(self):
        implicit = self.tls.mode is TLSMode.IMPLICIT
        # start_tls=False: the upgrade is driven explicitly by _negotiate_tls
        smtp = aiosmtplib.SMTP(
            hostname=self.hostname,
            port=self.port,
            use_tls=implicit,
            start_tls=False,
            tls_context=self.tls.context if implicit else None,
            timeout=self.timeout,
        )
        logger.debug("Connecting to %s (tls=%s)", self.server, self.tls.mode.value)
        try:
            await smtp.connect()
        except (aiosmtplib.SMTPException, *_TRANSPORT_ERRORS) as exc:
            raise MailConnectionError(f"Cannot connect to {self.server}: {exc}") from exc
        self.state = SessionState.CONNECTED
        return smtp

    async def _run(self, smtp, envelope: Envelope, payload: bytes) -> None:
        try:
            await self._hello(smtp)
            await self._negotiate_tls(smtp)
            await self._authenticate(smtp)
            await self._send_envelope(smtp, envelope)
            await self._send_data(smtp, payload)
            await self._quit(smtp)
        except MailError:
            raise
        except _TRANSPORT_ERRORS as exc:
            raise MailConnectionError(
                f"Connection to {self.server} lost during {self.state.value}: {exc}"
            ) from exc
        except aiosmtplib.SMTPException as exc:
            raise ProtocolError(
                f"SMTP error from {self.server} after {self.state.value}: {exc}",
                smtp_code=_smtp_code(exc),
            ) from exc

    async def _hello(self, smtp) -> None:
        try:
            await smtp.ehlo()
        except aiosmtplib.SMTPHeloError:
            logger.debug("EHLO refused by %s, falling back to HELO", self.server)
            try:
                await smtp.helo()
            except aiosmtplib.SMTPHeloError as exc:
                raise ProtocolError(
                    f"{self.server} refused HELO: {exc}", smtp_code=_smtp_code(exc)
                ) from exc

    async def _negotiate_tls(self, smtp) -> None:
        if self.tls.mode is TLSMode.IMPLICIT:
            return
        if not smtp.supports_extension("starttls"):
            if self.tls.mode is TLSMode.REQUIRED:
                raise TLSUpgradeFailed(f"{self.server} does not advertise STARTTLS")
            logger.debug("%s does not advertise STARTTLS, continuing in plaintext", self.server)
            return
        logger.debug("Upgrading connection to %s with STARTTLS", self.server)
        try:
            await smtp.starttls(tls_context=self.tls.context)
            # capabilities must be rediscovered on the encrypted channel
            await smtp.ehlo()
        except (aiosmtplib.SMTPException, ssl.SSLError, *_TRANSPORT_ERRORS) as exc:
            raise TLSUpgradeFailed(
                f"STARTTLS with {self.server} failed: {exc}", smtp_code=_smtp_code(exc)
            ) from exc
        self.state = SessionState.TLS_NEGOTIATED

    async def _authenticate(self, smtp) -> None:
        if self.credentials is None:
            return
        if not smtp.supports_extension("auth"):
            logger.info("%s does not advertise AUTH, sending unauthenticated", self.server)
            return
        logger.debug("Authenticating to %s as %s", self.server, self.credentials.username)
        try:
            await smtp.login(self.credentials.username, self.credentials.password)
        except _TRANSPORT_ERRORS:
            raise
        except aiosmtplib.SMTPException as exc:
            raise AuthFailed(
                f"Authentication as {self.credentials.username} failed: {exc}",
                smtp_code=_smtp_code(exc),
            ) from exc
        self.state = SessionState.AUTHENTICATED

    async def _send_envelope(self, smtp, envelope: Envelope) -> None:
        try:
            await smtp.mail(envelope.sender)
        except aiosmtplib.SMTPResponseException as exc:
            logger.warning("%s rejected sender %s: %s", self.server, envelope.sender, exc)
            raise SenderRejected(
                f"Sender {envelope.sender!r} rejected: {exc}", smtp_code=_smtp_code(exc)
            ) from exc

        for index, recipient in enumerate(envelope.recipients):
            try:
                await smtp.rcpt(recipient)
            except aiosmtplib.SMTPResponseException as exc:
                logger.warning("%s rejected recipient %s: %s", self.server, recipient, exc)
                raise RecipientRejected(
                    recipient, index, str(exc), smtp_code=_smtp_code(exc)
                ) from exc
        self.state = SessionState.ENVELOPE_SENT

    async def _send_data(self, smtp, payload: bytes) -> None:
        logger.debug("Sending %d bytes to %s", len(payload), self.server)
        try:
            await smtp.data(payload)
        except aiosmtplib.SMTPResponseException as exc:
            raise DataRejected(
                f"{self.server} rejected message data: {exc}", smtp_code=_smtp_code(exc)
            ) from exc
        self.state = SessionState.DATA_SENT

    async def _quit(self, smtp) -> None:
        try:
            await smtp.quit()
        except aiosmtplib.SMTPResponseException as exc:
            raise ProtocolError(
                f"{self.server} refused QUIT: {exc}", smtp_code=_smtp_code(exc)
            ) from exc

    def _close(self, smtp) -> None:
        if smtp.is_connected:
            smtp.close()
        self.state = SessionState.CLOSED
