"""
Transfers router — atomic money transfers between accounts.

Endpoints:
  POST /transfers — Transfer money from one account to another
  GET  /transfers — List recorded transfers, oldest first

A transfer debits the sender, credits the receiver and appends one record
to the transfer ledger in a single database transaction. A request that
fails for any reason leaves no trace: no balance change and no record.

Retryable failures (lock timeout, storage abort) answer 503 with a
Retry-After header.
"""

from fastapi import APIRouter, Depends, Query, status

from bank_ledger.dependencies import get_transfer_engine
from bank_ledger.schemas.transfer import TransferRequest, TransferResponse
from bank_ledger.services.transfer_engine import TransferEngine

router = APIRouter()


@router.post(
    "",
    response_model=TransferResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Transfer money between accounts",
)
async def create_transfer(
    request: TransferRequest,
    engine: TransferEngine = Depends(get_transfer_engine),
):
    """
    Transfer money from one account to another.

    - **sender** / **receiver**: Account id or name
    - **amount**: Positive, at most two decimal places (e.g. 40.00)
    - Cannot transfer to the same account
    - 422 if the sender's balance is too low
    """
    return await engine.transfer(
        request.sender,
        request.receiver,
        request.amount,
        description=request.description,
    )


@router.get(
    "",
    response_model=list[TransferResponse],
    summary="List transfers",
)
async def list_transfers(
    account_id: int | None = Query(None, description="Only transfers sent or received by this account"),
    limit: int | None = Query(None, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    engine: TransferEngine = Depends(get_transfer_engine),
):
    """
    List recorded transfers in chronological order, each with a
    display-formatted timestamp.
    """
    return await engine.list_transfers(account_id=account_id, limit=limit, offset=offset)
