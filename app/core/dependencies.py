"""
Service dependencies for route handlers
Reference: https://fastapi.tiangolo.com/tutorial/dependencies/
"""
from typing import Optional

from fastapi import Depends

from app.core.redis import RedisClient, get_redis_client
from app.services.admin import AdminService
from app.services.board import BoardService
from app.services.ingestion import IngestionService
from app.services.repository import LookRepository
from app.services.sharing import ShareService
from app.services.storage import StorageService, get_storage_service
from app.services.sync import SyncEngine


def get_repository(client: RedisClient = Depends(get_redis_client)) -> LookRepository:
    """
    Repository bound to the shared store client.

    Tests replace get_redis_client through app.dependency_overrides.
    """
    return LookRepository(client)


def get_sync_engine(repository: LookRepository = Depends(get_repository)) -> SyncEngine:
    return SyncEngine(repository)


def get_ingestion_service(
    repository: LookRepository = Depends(get_repository),
    engine: SyncEngine = Depends(get_sync_engine),
) -> IngestionService:
    return IngestionService(repository, engine)


def get_share_service(repository: LookRepository = Depends(get_repository)) -> ShareService:
    return ShareService(repository)


def get_board_service(
    repository: LookRepository = Depends(get_repository),
    engine: SyncEngine = Depends(get_sync_engine),
    storage: Optional[StorageService] = Depends(get_storage_service),
) -> BoardService:
    return BoardService(repository, engine, storage)


def get_admin_service(repository: LookRepository = Depends(get_repository)) -> AdminService:
    return AdminService(repository)
