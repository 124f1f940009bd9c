from enum import Enum
from typing import Optional

from pydantic import BaseModel


class MessageType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    FILE = "file"


class AttachmentKind(str, Enum):
    IMAGE = "image"
    FILE = "file"


class AttachmentInDB(BaseModel):
    """Attachment embedded in a message document"""
    url: str
    kind: AttachmentKind
    name: Optional[str] = None

    def to_document(self) -> dict:
        return {"url": self.url, "kind": self.kind.value, "name": self.name}


def message_type_for(attachment: Optional[AttachmentInDB]) -> MessageType:
    """A message's type follows its attachment; no attachment means text"""
    if attachment is None:
        return MessageType.TEXT
    if attachment.kind == AttachmentKind.IMAGE:
        return MessageType.IMAGE
    return MessageType.FILE
