"""Connected mail accounts and per-user notification preferences."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict

AccountStatus = Literal["active", "expired", "error"]
Channel = Literal["email", "whatsapp"]


class Account(BaseModel):
    """One connected mailbox. Token fields are only ever written by the credential manager."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    email: str
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    status: AccountStatus = "active"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TokenGrant(BaseModel):
    """Result of an OAuth code exchange or refresh."""

    access_token: str
    expires_at: datetime
    refresh_token: Optional[str] = None


class UserNotificationSettings(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    receive_by_email: bool = True
    receive_by_whatsapp: bool = False
    email: Optional[str] = None
    whatsapp_number: Optional[str] = None

    def channel_enabled(self, channel: Channel) -> bool:
        return self.receive_by_email if channel == "email" else self.receive_by_whatsapp

    def destination(self, channel: Channel) -> Optional[str]:
        return self.email if channel == "email" else self.whatsapp_number
