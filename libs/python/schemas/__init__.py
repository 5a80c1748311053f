"""Shared schema exports."""

from .account import Account, Session
from .envelope import Envelope, ListEnvelope
from .payment import Notification, Payment
from .sales import Client, Installment, InstallmentSummary, Property, RealEstate, Seller

__all__ = [
    "Account",
    "Client",
    "Envelope",
    "Installment",
    "InstallmentSummary",
    "ListEnvelope",
    "Notification",
    "Payment",
    "Property",
    "RealEstate",
    "Seller",
    "Session",
]
