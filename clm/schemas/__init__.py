"""Domain schemas for contract readings."""

from clm.schemas.domain import ContractReading, LegalClassification

__all__ = [
    "ContractReading",
    "LegalClassification",
]
