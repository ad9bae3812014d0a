"""Documents held by the store and the parameter documents sent by clients."""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

# A document id is a positive integer, unique per entity kind.
DocumentId = int

# Seconds since 1970-01-01 00:00:00 UTC. Kept well below 2**53 - 1 so that
# JavaScript clients can represent it exactly.
Timestamp = int


# -----------------------------
# Stored documents
# -----------------------------
class User(BaseModel):
    id: DocumentId
    password: str = Field(..., description="Opaque bearer secret issued at registration.")


class Message(BaseModel):
    id: DocumentId
    author: DocumentId
    text: str
    created: Timestamp
    modified: Optional[Timestamp] = None


# -----------------------------
# Request parameters
# -----------------------------
class CreateMessageParams(BaseModel):
    user: User
    text: str


class UpdateMessageParams(BaseModel):
    message: DocumentId
    user: User
    text: str


class DeleteMessageParams(BaseModel):
    message: DocumentId
    user: User


__all__ = [
    "DocumentId",
    "Timestamp",
    "User",
    "Message",
    "CreateMessageParams",
    "UpdateMessageParams",
    "DeleteMessageParams",
]
