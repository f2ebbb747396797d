"""Repository helpers for contracts and extractions."""

from __future__ import annotations

from datetime import date
from typing import Optional
from uuid import uuid4

from sqlalchemy.orm import Session

from clm.core.config import settings
from clm.core.errors import ContractNotFound
from clm.db.models import Contract, ContractState, Extraction, RenewalType, ValidationStatus


def create_contract(
    db: Session,
    *,
    organization_id: str,
    title: str,
    state: ContractState = ContractState.draft,
    start_of_effect: Optional[date] = None,
    term_date: Optional[date] = None,
    renewal_decision_deadline: Optional[date] = None,
    notice_period_days: Optional[int] = None,
    renewal_type: Optional[RenewalType] = None,
    confidence_threshold: Optional[float] = None,
) -> Contract:
    """Insert a contract record.

    ``state`` is the record's initial state as imported; afterwards it only
    changes through the event ledger. Validation always starts at none.
    """
    contract = Contract(
        id=str(uuid4()),
        organization_id=organization_id,
        title=title,
        state=state,
        validation_status=ValidationStatus.none,
        start_of_effect=start_of_effect,
        term_date=term_date,
        renewal_decision_deadline=renewal_decision_deadline,
        notice_period_days=notice_period_days,
        renewal_type=renewal_type,
        confidence_threshold=(
            settings.DEFAULT_CONFIDENCE_THRESHOLD
            if confidence_threshold is None
            else confidence_threshold
        ),
    )
    db.add(contract)
    db.flush()
    db.refresh(contract)
    return contract


def get_contract(db: Session, contract_id: str) -> Contract:
    contract = db.get(Contract, contract_id)
    if contract is None:
        raise ContractNotFound(contract_id)
    return contract


def get_extraction(db: Session, extraction_id: str) -> Optional[Extraction]:
    return db.get(Extraction, extraction_id)
