from dataclasses import dataclass
from decimal import Decimal

from django.conf import settings

MILLION = Decimal(1_000_000)


@dataclass(frozen=True)
class PricingTable:
    """USD per million tokens."""
    input_per_million: Decimal
    output_per_million: Decimal

    @classmethod
    def from_settings(cls):
        table = getattr(settings, 'SCOUT_PRICING', {}) or {}
        return cls(
            input_per_million=Decimal(str(table.get('input_per_million', '3.00'))),
            output_per_million=Decimal(str(table.get('output_per_million', '15.00'))),
        )

    def cost(self, input_tokens, output_tokens) -> Decimal:
        return (
            Decimal(input_tokens) / MILLION * self.input_per_million
            + Decimal(output_tokens) / MILLION * self.output_per_million
        )
