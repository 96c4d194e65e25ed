# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Helpers shared by the test modules: sample messages, parsing and a fake SMTP client."""

import io
from email import message_from_bytes
from email import policy as email_policy
from email.parser import BytesParser

from mime_mailer.models import Attachment, Message

PLAIN_BODY = (
    "My Plain Text Body áűőú\n Lorem ipsum dolor sit amet, consectetur adipiscing elit.\n"
    " Nunc et purus massa. Maecenas sed ex iaculis, feugiat elit ullamcorper, eleifend elit. "
    "Aliquam ultricies libero vitae interdum maximus. Nullam placerat purus dolor, a tempor "
    "magna efficitur in."
)
HTML_BODY = (
    "<p>My <b>HTML</b> Body</p>\n"
    "<p> Lorem ipsum dolor sit amet, consectetur adipiscing elit. Nunc et purus massa.</p>"
)
ATTACHMENT_NAME = "test.txt"
ATTACHMENT_CONTENT = (
    b"Lorem ipsum dolor sit amet, consectetur adipiscing elit. Nunc et purus massa. "
    b"Aenean sed enim turpis. Maecenas sed ex iaculis, feugiat elit ullamcorper, eleifend elit. "
    b"Nunc cursus arcu quis sapien dapibus suscipit."
)


def make_message(plain=True, html=False, attachment=False, **kwargs) -> Message:
    msg = Message(subject="My Subject (abcdefghijklmnop qrstuvwxyz0123456789)", **kwargs)
    msg.set_from("Doman Sender <sender@domain.com>")
    msg.add_to("First person <to_1@domain.com>")
    if plain:
        msg.body = PLAIN_BODY
    if html:
        msg.html_body = HTML_BODY
    if attachment:
        msg.attachments.append(
            Attachment(name=ATTACHMENT_NAME, data=io.BytesIO(ATTACHMENT_CONTENT), content_type="text/plain")
        )
    return msg


def parse(raw: bytes):
    """Parse rendered bytes with the modern API (decoded headers and content)."""
    return BytesParser(policy=email_policy.default).parsebytes(raw)


def parse_raw_headers(raw: bytes):
    """Parse rendered bytes keeping header values exactly as written."""
    return message_from_bytes(raw)


def normalise(text: str) -> str:
    return text.replace("\r\n", "\n")


class FakeSMTP:
    """Scripted replacement for :class:`aiosmtplib.SMTP`.

    ``failures`` maps a step name (``connect``, ``ehlo``, ``starttls``,
    ``login``, ``mail``, ``rcpt:<address>``, ``data``, ``quit``) to the
    exception that step raises.
    """

    def __init__(self, hostname, port, use_tls=False, start_tls=None, tls_context=None, timeout=None):
        self.hostname = hostname
        self.port = port
        self.use_tls = use_tls
        self.start_tls = start_tls
        self.tls_context = tls_context
        self.timeout = timeout
        self.extensions = {"starttls", "auth"}
        self.failures = {}
        self.commands = []
        self.connected = False
        self.closed = False
        self.login_credentials = None
        self.payload = None

    def _step(self, name, *args):
        self.commands.append((name, *args) if args else name)
        key = f"{name}:{args[0]}" if name == "rcpt" else name
        exc = self.failures.get(key)
        if exc is not None:
            raise exc

    async def connect(self):
        self._step("connect")
        self.connected = True

    async def ehlo(self):
        self._step("ehlo")

    async def helo(self):
        self._step("helo")

    def supports_extension(self, extension):
        return extension.lower() in self.extensions

    async def starttls(self, tls_context=None):
        self._step("starttls")
        self.tls_context = tls_context

    async def login(self, username, password):
        self._step("login", username)
        self.login_credentials = (username, password)

    async def mail(self, sender):
        self._step("mail", sender)

    async def rcpt(self, recipient):
        self._step("rcpt", recipient)

    async def data(self, payload):
        self._step("data")
        self.payload = payload

    async def quit(self):
        self._step("quit")
        self.connected = False

    @property
    def is_connected(self):
        return self.connected

    def close(self):
        self.closed = True
        self.connected = False
