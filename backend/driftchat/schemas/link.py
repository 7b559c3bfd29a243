"""Link request/response schemas."""

from datetime import datetime

from driftchat.schemas.common import CamelModel


class LinkCreated(CamelModel):
    """Identifiers handed to the creator once, at creation time.

    ``creator_token`` carries the link's ``creator_id``.
    """

    link_id: str
    creator_token: str


class LinkRead(CamelModel):
    """Serialized link."""

    id: str
    creator_id: str
    created_at: datetime
    conversation_ids: list[str]


class LinkVerification(CamelModel):
    exists: bool
    link: LinkRead | None = None
