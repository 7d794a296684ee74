from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from dealerhub.core.db import get_db
from dealerhub.core.errors import ForbiddenError
from dealerhub.schemas.ledger import (
    CommissionOut,
    TransactionCompletedOut,
    TransactionCreate,
    TransactionOut,
)
from dealerhub.services.attribution import (
    cancel_transaction,
    complete_transaction,
    confirm_transaction,
    get_transaction,
    open_transaction,
)
from dealerhub.services.tenancy import ResolvedActor, get_resolved_actor

router = APIRouter()


@router.post("/transactions", response_model=TransactionOut, status_code=201)
async def open_txn(
    payload: TransactionCreate,
    actor: ResolvedActor = Depends(get_resolved_actor),
    db: AsyncSession = Depends(get_db),
) -> TransactionOut:
    txn = await open_transaction(
        db, actor=actor, listing_id=payload.listing_id, agreed_price=payload.agreed_price, lead_id=payload.lead_id,
    )
    resp = TransactionOut.model_validate(txn)
    await db.commit()
    return resp


@router.get("/transactions/{transaction_id}", response_model=TransactionOut)
async def get_txn(
    transaction_id: str,
    actor: ResolvedActor = Depends(get_resolved_actor),
    db: AsyncSession = Depends(get_db),
) -> TransactionOut:
    txn = await get_transaction(db, transaction_id)
    parties = {txn.buyer_id}
    if actor.owned_dealership_id is not None and txn.seller_id == actor.owned_dealership_id:
        parties.add(actor.actor_id)
    if not actor.is_admin and actor.actor_id not in parties:
        raise ForbiddenError("Not a party to this transaction")
    return TransactionOut.model_validate(txn)


@router.post("/transactions/{transaction_id}/confirm", response_model=TransactionOut)
async def confirm_txn(
    transaction_id: str,
    actor: ResolvedActor = Depends(get_resolved_actor),
    db: AsyncSession = Depends(get_db),
) -> TransactionOut:
    txn = await confirm_transaction(db, actor=actor, transaction_id=transaction_id)
    resp = TransactionOut.model_validate(txn)
    await db.commit()
    return resp


@router.post("/transactions/{transaction_id}/cancel", response_model=TransactionOut)
async def cancel_txn(
    transaction_id: str,
    actor: ResolvedActor = Depends(get_resolved_actor),
    db: AsyncSession = Depends(get_db),
) -> TransactionOut:
    txn = await cancel_transaction(db, actor=actor, transaction_id=transaction_id)
    resp = TransactionOut.model_validate(txn)
    await db.commit()
    return resp


@router.post("/transactions/{transaction_id}/complete", response_model=TransactionCompletedOut)
async def complete_txn(
    transaction_id: str,
    actor: ResolvedActor = Depends(get_resolved_actor),
    db: AsyncSession = Depends(get_db),
) -> TransactionCompletedOut:
    txn, commission = await complete_transaction(db, actor=actor, transaction_id=transaction_id)
    resp = TransactionCompletedOut(
        transaction=TransactionOut.model_validate(txn),
        commission=CommissionOut.model_validate(commission) if commission else None,
    )
    await db.commit()
    return resp
