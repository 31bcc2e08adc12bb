class ChatOrderError(RuntimeError):
    pass


class IntegrationError(ChatOrderError):
    def __init__(self, integration: str, detail: str, status_code: int | None = None):
        super().__init__(f"{integration} failed: {detail}")
        self.integration = integration
        self.detail = detail
        self.status_code = status_code


class IntegrationUnavailable(IntegrationError):
    """Raised without calling out when the integration guard is cooling down."""

    def __init__(self, integration: str):
        super().__init__(integration, "temporarily disabled after repeated failures")


class PaymentLinkError(IntegrationError):
    def __init__(self, detail: str, status_code: int | None = None):
        super().__init__("payment_link", detail, status_code=status_code)


class MissingContextError(ChatOrderError):
    """The stored flow points at a cart line or order that no longer exists."""
