"""Authenticated caller identity."""

from pydantic import BaseModel


class Identity(BaseModel):
    """Current user as resolved by the auth middleware."""

    model_config = {"frozen": True}

    user_id: str
    display_name: str | None = None
    email: str | None = None

    @property
    def name(self) -> str:
        """Name shown on messages and member cards."""
        return self.display_name or self.email or "Anon"
