"""Webhook request exceptions."""

from ..branches.exceptions import BranchPilotError


class WebhookRequestError(BranchPilotError):
    """A webhook or signed request payload is incomplete or malformed."""

    pass


class WebhookSignatureError(WebhookRequestError):
    """A signed request carries a missing or wrong signature."""

    pass
