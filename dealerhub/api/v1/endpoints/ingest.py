from fastapi import APIRouter, Depends, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from dealerhub.core.config import settings
from dealerhub.core.db import get_db
from dealerhub.core.errors import UnauthorizedError
from dealerhub.core.security import tokens_match
from dealerhub.schemas.listing import IngestIn, PartnerListingOut
from dealerhub.services.idempotency import (
    get_or_reserve_idempotency,
    optional_idempotency_key,
    store_idempotency_response,
)
from dealerhub.services.intake import ingest_automated

router = APIRouter()

bearer = HTTPBearer(auto_error=False)


@router.post("/ingest/listings", response_model=PartnerListingOut, status_code=201)
async def ingest_listing(
    payload: IngestIn,
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Security(bearer),
    idempotency_key: str | None = Depends(optional_idempotency_key),
    db: AsyncSession = Depends(get_db),
) -> PartnerListingOut:
    token = credentials.credentials if credentials else None
    # checked before the idempotency store so replays never answer unauthenticated callers
    if not tokens_match(token, settings.ingest_api_key.get_secret_value()):
        raise UnauthorizedError("Invalid ingestion token")

    scope = f"ingest:{settings.ingest_partner_id}"
    if idempotency_key:
        existing_idm, _ = await get_or_reserve_idempotency(
            db=db,
            scope=scope,
            idempotency_key=idempotency_key,
            request_path=str(request.url.path),
            request_body=payload.model_dump(),
        )
        if existing_idm:
            return PartnerListingOut(**existing_idm.response)

    row = await ingest_automated(db, token=token, payload=payload.payload)
    resp = PartnerListingOut.model_validate(row)

    if idempotency_key:
        await store_idempotency_response(
            db=db, scope=scope, idempotency_key=idempotency_key, response=resp.model_dump(mode="json"),
        )
    await db.commit()
    return resp
