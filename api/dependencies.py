"""
FastAPI dependencies exposing the resources created by the app lifespan.

Route handlers never build engines or Redis clients themselves; they get
the process-wide instances stored on app.state.
"""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from parking.transactions.executor import TransactionExecutor
from shared.cache import CacheAside


def get_executor(request: Request) -> TransactionExecutor:
    return request.app.state.executor


def get_cache(request: Request) -> CacheAside:
    return request.app.state.cache


def get_session_factory(request: Request) -> async_sessionmaker[AsyncSession]:
    return request.app.state.session_factory


ExecutorDep = Annotated[TransactionExecutor, Depends(get_executor)]
CacheDep = Annotated[CacheAside, Depends(get_cache)]
SessionFactoryDep = Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)]
