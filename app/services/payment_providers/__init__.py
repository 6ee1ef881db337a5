"""Payment provider integrations."""


class PaymentProviderError(Exception):
    """Base error for payment providers."""
