from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field
from pydantic.functional_validators import BeforeValidator
from typing_extensions import Annotated


def ensure_utc_datetime(value: Any) -> Any:
    """datetime 값을 UTC 기준으로 정규화한다.

    - 이전 구현이 저장한 ISO8601 문자열도 datetime 으로 파싱한다.
    - tzinfo 가 없으면 UTC 로 간주해 tzinfo=UTC 를 부여
    - tzinfo 가 있으면 UTC 로 변환
    """

    if isinstance(value, str):
        # "2025-01-01T00:00:00.000Z" 형태는 3.11 이상에서 fromisoformat 으로 바로 파싱된다.
        value = datetime.fromisoformat(value.strip())
    if not isinstance(value, datetime):
        return value
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_object_id(value: Any) -> ObjectId:
    """여러 타입(str, ObjectId 등)을 MongoDB ObjectId 로 변환한다."""

    if isinstance(value, ObjectId):
        return value
    if value is None:
        raise TypeError("ObjectId cannot be None")
    return ObjectId(str(value))


def from_object_id(value: Optional[ObjectId]) -> Optional[str]:
    if value is None:
        return None
    return str(value)


PyObjectId = Annotated[ObjectId, BeforeValidator(to_object_id)]
MongoDateTime = Annotated[datetime, BeforeValidator(ensure_utc_datetime)]


class BaseDocument(BaseModel):
    """MongoDB 도큐먼트용 공통 베이스 모델.

    accessCodes / subscriptions 컬렉션은 모바일 클라이언트와 공유하므로
    필드 이름은 camelCase alias 로 저장하고, 파이썬 쪽 속성은 snake_case 를 쓴다.
    외부 도구가 만든 도큐먼트에는 createdAt/updatedAt 이 없을 수 있어 선택 필드로 둔다.
    """

    model_config = ConfigDict(
        arbitrary_types_allowed=True,
        populate_by_name=True,
        use_enum_values=True,
        extra="ignore",
    )

    id: Optional[PyObjectId] = Field(default=None, alias="_id")
    created_at: Optional[MongoDateTime] = Field(default=None, alias="createdAt")
    updated_at: Optional[MongoDateTime] = Field(default=None, alias="updatedAt")

    def to_mongo_record(self) -> dict[str, Any]:
        """MongoDB 저장에 사용할 표준 레코드(dict) 직렬화.

        - by_alias=True 로 id -> _id, user_id -> userId 처럼 저장 필드 이름과 일치시킨다.
        - exclude_none=True 로 _id=None 같은 필드를 제거해 Mongo가 ObjectId 를 생성하도록 한다.
        """

        return self.model_dump(by_alias=True, exclude_none=True)
