"""Pydantic models for webhook endpoint responses."""

from ._strict_base import StrictModel


class WebhookAckResponse(StrictModel):
    """Acknowledgement payload returned to Stripe."""

    received: bool = True


__all__ = ["WebhookAckResponse"]
