"""Credit card input submitted for storage at the card vault."""

from dataclasses import dataclass, field
from typing import Dict, Optional


@dataclass(frozen=True)
class CreditCard:
    """
    A card as submitted by the subscriber.

    The raw card number never reaches this service; `token` is the
    gateway's payment-method reference (e.g. a Stripe `pm_...` id) and
    only display fragments are kept locally.
    """
    token: str
    last4: str
    exp_month: int
    exp_year: int
    billing_address: Optional[Dict[str, str]] = field(default=None, compare=False)

    @property
    def display_number(self) -> str:
        return f"XXXX-XXXX-XXXX-{self.last4}"

    @property
    def expiry_date(self) -> str:
        return f"{self.exp_month:02d}-{self.exp_year}"

    def gateway_options(self) -> Dict:
        """Options forwarded to the vault alongside the card."""
        if self.billing_address:
            return {'billing_address': dict(self.billing_address)}
        return {}
