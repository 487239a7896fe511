"""Business, per-business settings and remote platform credentials."""

from __future__ import annotations

from pydantic import BaseModel, Field


class Business(BaseModel):
    id: str
    name: str = ""
    owner_id: str | None = None
    whatsapp_enabled: bool = False


class WhatsAppConfig(BaseModel):
    """Credentials and identifiers for a business's WhatsApp Business account."""

    phone_number_id: str
    business_account_id: str | None = None
    catalog_id: str
    access_token: str = Field(..., repr=False)
    active: bool = True


class NotificationSettings(BaseModel):
    order_updates: bool = True
    low_stock_alerts: bool = True
    daily_summary: bool = False


class MessagingSettings(BaseModel):
    greeting_message: str = "Hello! Welcome to our store."
    auto_reply_enabled: bool = True
    default_language: str = "en"


class BusinessSettings(BaseModel):
    """Per-business toggles; the defaults apply when no settings document exists."""

    notifications: NotificationSettings = Field(default_factory=NotificationSettings)
    whatsapp: MessagingSettings = Field(default_factory=MessagingSettings)
