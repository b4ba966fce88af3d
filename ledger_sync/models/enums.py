"""
Shared enumerations for storage and domain models.

Using Python enums mapped to database enums ensures that
only valid values can be stored. A row carrying an unknown
category or payment mode is defaulted to OTHER when it is
read back rather than passed through.
"""

import enum


class EntryType(str, enum.Enum):
    """Direction of a cash movement."""
    IN = "in"
    OUT = "out"


class Category(str, enum.Enum):
    """What the money was spent on or received for."""
    FOOD = "Food"
    FUEL = "Fuel"
    UTILITIES = "Utilities"
    TRANSPORT = "Transport"
    SHOPPING = "Shopping"
    TRAVEL = "Travel"
    OTHER = "Other"


class PaymentMode(str, enum.Enum):
    """How the money moved."""
    CASH = "Cash"
    UPI = "UPI"
    CARD = "Card"
    OTHER = "Other"
