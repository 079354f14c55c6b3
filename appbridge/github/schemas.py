"""Pydantic schemas for install and webhook endpoints."""

from typing import Optional

from pydantic import BaseModel


class InstallStartRequest(BaseModel):
    return_path: Optional[str] = None


class InstallStartResponse(BaseModel):
    """Where the frontend should send the browser, plus the state it carries."""

    installation_url: str
    state: str
    expires_in: int


class AppConfigResponse(BaseModel):
    """Values an operator registers on the GitHub App settings page."""

    app_slug: str
    callback_url: str
    webhook_url: str
    installation_url: str


class WebhookResponse(BaseModel):
    """Acknowledgement response for webhook events."""

    received: bool
    event: str
    action: str
    delivery_id: Optional[str] = None
