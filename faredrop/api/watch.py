from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from faredrop.api.deps import get_current_user_id
from faredrop.core.config import settings
from faredrop.core.constants import HISTORY_DEFAULT_LIMIT, HISTORY_MAX_LIMIT
from faredrop.core.db import get_session
from faredrop.crud.watch import crud_price_snapshot, crud_watch
from faredrop.schemas.watch import (PriceHistory, PriceSnapshotOut,
                                    WatchCreate, WatchList, WatchOut,
                                    WatchUpdate)

router = APIRouter(prefix='/watches', tags=['watches'])


@router.get(
    '',
    status_code=status.HTTP_200_OK,
    response_model=WatchList,
)
async def list_watches(
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    watches = await crud_watch.get_multi(session, user_id)
    return WatchList(watches=[WatchOut.model_validate(w) for w in watches])


@router.post(
    '',
    status_code=status.HTTP_201_CREATED,
    response_model=WatchOut,
)
async def create_watch(
    payload: WatchCreate,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    watch = await crud_watch.create(
        session, user_id, payload.model_dump(exclude_unset=True)
    )
    return WatchOut.model_validate(watch)


@router.get(
    '/{watch_id}',
    status_code=status.HTTP_200_OK,
    response_model=WatchOut,
)
async def get_watch(
    watch_id: str,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    watch = await crud_watch.get(session, user_id, watch_id)
    return WatchOut.model_validate(watch)


@router.api_route(
    '/{watch_id}',
    methods=['PUT', 'PATCH'],
    status_code=status.HTTP_200_OK,
    response_model=WatchOut,
)
async def update_watch(
    watch_id: str,
    payload: WatchUpdate,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    watch = await crud_watch.update(
        session, user_id, watch_id, payload.model_dump(exclude_unset=True)
    )
    return WatchOut.model_validate(watch)


@router.delete(
    '/{watch_id}',
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_watch(
    watch_id: str,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    await crud_watch.delete(session, user_id, watch_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    '/{watch_id}/history',
    status_code=status.HTTP_200_OK,
    response_model=PriceHistory,
)
async def get_price_history(
    watch_id: str,
    limit: int = Query(
        default=HISTORY_DEFAULT_LIMIT, ge=1, le=HISTORY_MAX_LIMIT
    ),
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    # History is readable by id unless ownership checks are switched on
    if settings.history_requires_owner:
        await crud_watch.get(session, user_id, watch_id)
    snapshots = await crud_price_snapshot.history(
        session, watch_id, limit=limit
    )
    return PriceHistory(
        snapshots=[PriceSnapshotOut.model_validate(s) for s in snapshots],
        count=len(snapshots),
    )
