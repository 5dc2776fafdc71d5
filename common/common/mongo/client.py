from __future__ import annotations

import logging
import threading
from typing import Optional

from pymongo import IndexModel, MongoClient
from pymongo.collection import Collection
from pymongo.database import Database

from .config import get_mongo_db_name, get_mongo_uri, get_server_selection_timeout_ms


logger = logging.getLogger(__name__)


_client: Optional[MongoClient] = None
_db: Optional[Database] = None
_lock = threading.Lock()


def get_client() -> MongoClient:
    """전역 MongoClient 싱글톤을 반환한다.

    - MONGO_URI 에서 URI 를 읽어온다.
    - ping 으로 연결을 검증한다.
    - tz_aware=True 로 읽어 온 datetime 이 항상 UTC tzinfo 를 갖도록 한다.
    - URI 에 기본 데이터베이스가 포함되어 있지 않고 MONGO_DB_NAME 도 없으면 에러를 발생시킨다.

    컬렉션 인덱스는 각 Repository 가 최초 생성 시 보장한다.
    """

    global _client, _db

    if _client is not None:
        return _client

    with _lock:
        if _client is not None:
            return _client

        uri = get_mongo_uri()
        client: MongoClient = MongoClient(
            uri,
            tz_aware=True,
            serverSelectionTimeoutMS=get_server_selection_timeout_ms(),
        )

        try:
            client.admin.command("ping")
        except Exception as exc:  # noqa: BLE001
            client.close()
            raise RuntimeError(f"failed to connect to MongoDB: {exc}") from exc

        # 사용할 DB 이름 결정: MONGO_DB_NAME 우선, 없으면 URI의 기본 DB 사용
        db_name = get_mongo_db_name()
        try:
            if db_name:
                db = client[db_name]
            else:
                db = client.get_default_database()
        except Exception as exc:  # noqa: BLE001
            client.close()
            raise RuntimeError(
                "MongoDB database name must be specified via MONGO_DB_NAME or in MONGO_URI (mongodb://.../db_name)",
            ) from exc

        _client = client
        _db = db

        logger.info("MongoDB connected (db=%s)", db.name)
        return _client


def get_database() -> Database:
    """전역 기본 Database 객체를 반환한다. FastAPI Depends 에서 그대로 사용한다."""

    global _db

    if _db is None:
        get_client()
    assert (
        _db is not None
    )  # get_client 에서 _db 를 초기화하지 못했다면 예외가 이미 발생했어야 한다.
    return _db


_indexed_collections: set[str] = set()
_index_lock = threading.Lock()


def ensure_indexes_once(collection: Collection, indexes: list[IndexModel]) -> None:
    """컬렉션별 인덱스를 프로세스당 한 번만 생성한다.

    Repository 는 요청마다 새로 만들어지므로 매번 create_indexes 를 호출하지 않도록 막는다.
    이미 존재하는 인덱스는 MongoDB 가 무시하므로 idempotent 하다. 유니크 인덱스가
    기존 중복 데이터 때문에 생성되지 않으면 예외가 그대로 전파된다.
    """

    key = collection.full_name
    if key in _indexed_collections:
        return

    with _index_lock:
        if key in _indexed_collections:
            return
        collection.create_indexes(indexes)
        _indexed_collections.add(key)
        logger.info("MongoDB indexes ensured (collection=%s)", key)


def close_client() -> None:
    """애플리케이션 종료 시 커넥션 풀을 정리한다."""

    global _client, _db

    with _lock:
        if _client is not None:
            _client.close()
        _client = None
        _db = None
