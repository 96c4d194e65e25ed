# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Pydantic schema for JSON message documents.

A payload looks like::

    {
        "from": "Sender <sender@example.com>",
        "to": ["First <to_1@example.com>"],
        "subject": "Hello",
        "body": "plain text",
        "html_body": "<p>html</p>",
        "headers": {"Reply-To": "replies@example.com"},
        "attachments": [
            {"filename": "report.pdf", "path": "/tmp/report.pdf"},
            {"filename": "note.txt", "content": "aGVsbG8=", "content_type": "text/plain"}
        ]
    }
"""

from __future__ import annotations

import base64
import binascii
import io
from pathlib import Path
from typing import Annotated, Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .errors import AttachmentReadError
from .models import Address, Attachment, Message


class AttachmentPayload(BaseModel):
    """Attachment entry of a message payload.

    Attributes:
        filename: Name suggested to the recipient.
        path: File to read, relative paths resolved against the payload file.
        content: Base64 encoded content, alternative to ``path``.
        content_type: MIME type; guessed from ``filename`` when omitted.
    """

    model_config = ConfigDict(extra="forbid")

    filename: Annotated[str, Field(min_length=1, max_length=255)]
    path: Optional[str] = None
    content: Optional[str] = None
    content_type: str = ""

    @field_validator("content")
    @classmethod
    def _check_base64(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        try:
            base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValueError("content is not valid base64") from exc
        return value

    @model_validator(mode="after")
    def _check_source(self) -> "AttachmentPayload":
        if (self.path is None) == (self.content is None):
            raise ValueError("exactly one of 'path' or 'content' is required")
        return self

    def to_attachment(self, base_dir: Optional[Path] = None) -> Attachment:
        if self.content is not None:
            data = base64.b64decode(self.content)
        else:
            path = Path(self.path)
            if base_dir is not None and not path.is_absolute():
                path = base_dir / path
            try:
                data = path.read_bytes()
            except OSError as exc:
                raise AttachmentReadError(self.filename, str(exc)) from exc
        return Attachment(name=self.filename, data=io.BytesIO(data), content_type=self.content_type)


def _split_addresses(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return value


class MessagePayload(BaseModel):
    """JSON representation of a :class:`~mime_mailer.models.Message`.

    Address fields accept a list or a comma separated string.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    sender: Annotated[str, Field(alias="from", min_length=1)]
    to: List[str] = Field(default_factory=list)
    cc: List[str] = Field(default_factory=list)
    bcc: List[str] = Field(default_factory=list)
    subject: str = ""
    body: Optional[str] = None
    html_body: Optional[str] = None
    headers: Dict[str, Union[str, List[str]]] = Field(default_factory=dict)
    attachments: List[AttachmentPayload] = Field(default_factory=list)

    @field_validator("to", "cc", "bcc", mode="before")
    @classmethod
    def _normalise_addresses(cls, value: Any) -> Any:
        return _split_addresses(value)

    def to_message(self, base_dir: Optional[Path] = None) -> Message:
        """Build the :class:`Message`, reading attachment files eagerly."""
        headers = {
            name: [value] if isinstance(value, str) else list(value)
            for name, value in self.headers.items()
        }
        return Message(
            from_=Address.parse(self.sender),
            to=[Address.parse(item) for item in self.to],
            cc=[Address.parse(item) for item in self.cc],
            bcc=[Address.parse(item) for item in self.bcc],
            subject=self.subject,
            body=self.body,
            html_body=self.html_body,
            attachments=[item.to_attachment(base_dir) for item in self.attachments],
            headers=headers,
        )
