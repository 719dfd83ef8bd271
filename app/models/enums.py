"""
Status Codes and Enums

Standardized constants for the shop's Supabase tables.
Values match the enum types defined in the database.
"""

from enum import Enum
from typing import Optional


class OrderStatus(str, Enum):
    """Service order status"""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentType(str, Enum):
    """Financial movement direction"""
    REVENUE = "revenue"
    EXPENSE = "expense"


class CreditSaleStatus(str, Enum):
    """Credit sale (crediário) status"""
    PAID = "paid"


class PaymentMethod(str, Enum):
    """Canonical payment methods for cash breakdowns"""
    CASH = "cash"
    CARD = "card"
    CREDIT = "credit"
    PIX = "pix"

    @classmethod
    def normalize(cls, name: Optional[str]) -> str:
        """
        Map a stored payment method name to its canonical value.

        Unknown names pass through lowercased; missing names count as cash.
        """
        if not name:
            return cls.CASH.value
        name_lower = str(name).strip().lower()
        if not name_lower:
            return cls.CASH.value
        if name_lower in ("cash", "dinheiro", "especie", "espécie"):
            return cls.CASH.value
        elif "crediario" in name_lower or "crediário" in name_lower or name_lower == "credit":
            return cls.CREDIT.value
        elif "card" in name_lower or "cart" in name_lower:
            return cls.CARD.value
        elif name_lower == "pix":
            return cls.PIX.value
        return name_lower


class ReportType(str, Enum):
    """Standard report kinds"""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class MarginQuality(str, Enum):
    """Qualitative profit margin band, lower bound inclusive"""
    EXCELLENT = "Excelente"
    GOOD = "Boa"
    REGULAR = "Regular"
    LOW = "Baixa"
    LOSS = "Prejuízo"

    @classmethod
    def from_margin(cls, margin_pct: float) -> "MarginQuality":
        if margin_pct >= 30:
            return cls.EXCELLENT
        elif margin_pct >= 20:
            return cls.GOOD
        elif margin_pct >= 10:
            return cls.REGULAR
        elif margin_pct >= 0:
            return cls.LOW
        return cls.LOSS
