"""Request models for the spin and subscription endpoints."""

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr


class SpinCreateRequest(BaseModel):
    """Body of a spin session creation request."""

    items: list[StrictStr]


class SubscriptionRequest(BaseModel):
    """Body of a subscribe or unsubscribe request."""

    model_config = ConfigDict(populate_by_name=True)

    chat_id: StrictInt | StrictStr | None = Field(default=None, alias="chatId")
