"""In-memory store for users and messages.

The store enforces authentication, authorship and text validation, assigns
ids and timestamps, and applies the retention cap. It holds no lock of its
own: callers must serialize every call (reads included), see
:func:`chitchat.server.create_app`.

Messages live in a dict keyed by id. Ids are handed out in increasing order
and edits replace the value in place, so insertion order of the dict is also
ascending id order and the oldest message is always the first key.
"""
from __future__ import annotations

import itertools
import logging
import secrets
import time
from typing import Callable, Dict, Iterable, Iterator, Optional, Sequence

from .documents import (
    CreateMessageParams,
    DeleteMessageParams,
    DocumentId,
    Message,
    Timestamp,
    UpdateMessageParams,
    User,
)
from .errors import (
    AuthenticationError,
    AuthorizationError,
    InternalError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger("chitchat.store")

MAX_TEXT_LENGTH = 100
DEFAULT_DENYLIST: Sequence[str] = ("fuck",)
SECRET_BYTES = 16  # 128 bits

Clock = Callable[[], float]


class MessagesView:
    """Lazy, restartable view over the stored messages in ascending id order.

    Each iteration yields copies, so callers cannot mutate stored documents.
    The view is live: iterate it under the same lock as the writers.
    """

    def __init__(self, messages: Dict[DocumentId, Message]) -> None:
        self._messages = messages

    def __iter__(self) -> Iterator[Message]:
        return (m.model_copy() for m in self._messages.values())

    def __len__(self) -> int:
        return len(self._messages)


class Store:
    """Owns every user and message document.

    Parameters
    ----------
    max_history : int | None
        Keep at most this many messages, evicting the oldest after each
        creation. ``None`` keeps everything.
    denylist : Iterable[str]
        Extra substrings rejected (case-insensitively) in message text, on
        top of :data:`DEFAULT_DENYLIST`.
    clock : Callable[[], float]
        Returns the current Unix time in seconds.
    user_ids, message_ids : Iterator[int] | None
        Id sequences; default to a private counter starting at 1.
    """

    def __init__(
        self,
        max_history: Optional[int] = None,
        *,
        denylist: Iterable[str] = DEFAULT_DENYLIST,
        clock: Clock = time.time,
        user_ids: Optional[Iterator[int]] = None,
        message_ids: Optional[Iterator[int]] = None,
    ) -> None:
        if max_history is not None and max_history < 0:
            raise ValueError(f"max_history must be >= 0 or None, got {max_history}")
        self.max_history = max_history
        # The default words are always rejected; configured ones are added.
        words = [*DEFAULT_DENYLIST, *(str(w) for w in denylist)]
        self.denylist = tuple(dict.fromkeys(w.lower() for w in words if w))
        self._clock = clock
        self._user_ids = user_ids if user_ids is not None else itertools.count(1)
        self._message_ids = message_ids if message_ids is not None else itertools.count(1)
        self._users: Dict[DocumentId, User] = {}
        self._messages: Dict[DocumentId, Message] = {}

    # --------- introspection ----------
    @property
    def message_count(self) -> int:
        return len(self._messages)

    @property
    def user_count(self) -> int:
        return len(self._users)

    def get_message(self, message_id: DocumentId) -> Optional[Message]:
        message = self._messages.get(message_id)
        return message.model_copy() if message is not None else None

    # --------- core API ----------
    def register_user(self) -> User:
        """Create a user with a fresh id and a random secret."""
        user = User(id=next(self._user_ids), password=secrets.token_hex(SECRET_BYTES))
        self._users[user.id] = user
        logger.debug("registered user %d", user.id)
        return user.model_copy()

    def list_messages(self) -> MessagesView:
        """Return every message in chronological (ascending id) order."""
        return MessagesView(self._messages)

    def create_message(self, params: CreateMessageParams) -> Message:
        self._authenticate(params.user)
        self.validate_text(params.text)
        created = self._now()
        message = Message(
            id=next(self._message_ids),
            author=params.user.id,
            text=params.text,
            created=created,
            modified=None,
        )
        self._messages[message.id] = message
        self._evict_oldest_over_cap()
        return message.model_copy()

    def update_message(self, params: UpdateMessageParams) -> Message:
        self._authenticate(params.user)
        current = self._owned_message(params.user, params.message)
        self.validate_text(params.text)
        message = current.model_copy(update={"text": params.text, "modified": self._now()})
        self._messages[message.id] = message
        return message.model_copy()

    def delete_message(self, params: DeleteMessageParams) -> Message:
        self._authenticate(params.user)
        self._owned_message(params.user, params.message)
        return self._messages.pop(params.message)

    # --------- validation ----------
    def validate_text(self, text: str) -> None:
        """Check length, then ASCII, then the denylist. First failure wins."""
        if len(text.encode("utf-8")) > MAX_TEXT_LENGTH:
            raise ValidationError("too long", f"Maximum {MAX_TEXT_LENGTH} characters please!")
        if not text.isascii():
            raise ValidationError("non-ASCII", "ASCII characters only please!")
        lowered = text.lower()
        if any(word in lowered for word in self.denylist):
            raise ValidationError("profanity", "No swear words please!")

    # --------- internals ----------
    def _now(self) -> Timestamp:
        try:
            now = int(self._clock())
        except (OSError, OverflowError, ValueError) as e:
            logger.error("clock failure: %s", e)
            raise InternalError() from e
        if now < 0:
            logger.error("clock returned a time before the epoch: %d", now)
            raise InternalError()
        return now

    def _authenticate(self, user: User) -> None:
        known = self._users.get(user.id)
        if known is None or not secrets.compare_digest(
            known.password.encode("utf-8"), user.password.encode("utf-8")
        ):
            raise AuthenticationError()

    def _owned_message(self, user: User, message_id: DocumentId) -> Message:
        message = self._messages.get(message_id)
        if message is None:
            raise NotFoundError()
        if message.author != user.id:
            raise AuthorizationError()
        return message

    def _evict_oldest_over_cap(self) -> None:
        if self.max_history is None or len(self._messages) <= self.max_history:
            return
        oldest = next(iter(self._messages))
        del self._messages[oldest]
        logger.debug("evicted message %d (max_history=%d)", oldest, self.max_history)


__all__ = ["Store", "MessagesView", "MAX_TEXT_LENGTH", "DEFAULT_DENYLIST"]
