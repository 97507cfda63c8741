"""
Mattermost incoming-webhook message schema.
"""

from pydantic import BaseModel, Field


class MattermostAttachment(BaseModel):
    """Rich attachment of a Mattermost post."""

    fallback: str = ""
    color: str = ""
    title: str = ""
    title_link: str = ""
    text: str = ""
    author_name: str = ""
    thumb_url: str = ""

    def to_payload(self) -> dict:
        """JSON payload with empty fields omitted (``fallback`` is always sent)."""
        payload = {key: value for key, value in self.model_dump().items() if value}
        payload["fallback"] = self.fallback
        return payload


class MattermostMessage(BaseModel):
    """A post for the Mattermost webhook, also used as slash-command response."""

    channel: str = ""
    username: str = ""
    icon_url: str = ""
    text: str = ""
    attachments: list[MattermostAttachment] = Field(default_factory=list)

    def to_payload(self) -> dict:
        """JSON payload with empty fields omitted."""
        payload = {
            key: value
            for key, value in self.model_dump(exclude={"attachments"}).items()
            if value
        }
        if self.attachments:
            payload["attachments"] = [a.to_payload() for a in self.attachments]
        return payload
