"""Request models for API endpoints."""

from pydantic import BaseModel, Field, field_validator


class ChannelCreateRequest(BaseModel):
    """Request to create a channel owned by the caller."""

    name: str = Field(
        ...,
        description="Channel name shown to members",
        examples=["Friday lunch crew"],
    )

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Reject blank names."""
        if not v.strip():
            raise ValueError("Channel name must not be blank")
        return v.strip()


class ChannelRenameRequest(ChannelCreateRequest):
    """Request to rename a channel (owner only)."""


class MemberJoinRequest(BaseModel):
    """Request to join a channel as the caller."""

    display_name: str | None = Field(
        default=None,
        description="Name shown on the member card (defaults to the caller's name)",
    )
    bio: str = Field(default="", description="Short self-introduction")


class InterestsUpdateRequest(BaseModel):
    """Request to replace the caller's interests in a channel."""

    tags: list[str] = Field(
        ...,
        description="Interest tag names, at most the configured maximum",
        examples=[["Gaming", "Travel"]],
    )


class MessageRequest(BaseModel):
    """Request to send a chat message to a live session."""

    text: str = Field(..., description="Message text; blank text is ignored")
