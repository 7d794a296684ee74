from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from dealerhub.core.db import get_db
from dealerhub.core.errors import UpstreamError
from dealerhub.schemas.search import SearchIntentIn, SearchIntentOut
from dealerhub.services.auth import Actor, get_actor
from dealerhub.services.http_client import HubHttpClient, get_http_client
from dealerhub.services.search_intent import create_search_intent

router = APIRouter()


@router.post("/search/intent", response_model=SearchIntentOut)
async def search_intent(
    payload: SearchIntentIn,
    actor: Actor = Depends(get_actor),
    http: HubHttpClient = Depends(get_http_client),
    db: AsyncSession = Depends(get_db),
) -> SearchIntentOut:
    try:
        intent = await create_search_intent(
            db, http=http, user_id=actor.user_id, user_input=payload.user_input, session_id=payload.session_id,
        )
    except UpstreamError:
        # keep the failed intent for ops; no parsed data was written
        await db.commit()
        raise

    resp = SearchIntentOut(
        id=intent.id,
        status=intent.status,
        parsed_filters=intent.parsed_filters,
        confidence=intent.confidence,
    )
    await db.commit()
    return resp
