from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from datetime import timedelta

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pymongo.database import Database
from pymongo.errors import AutoReconnect

from common.mongo.client import get_database
from redemption_service.app.main import create_app
from redemption_service.app.models.subscription import SubscriptionStatus
from redemption_service.app.services.redemption_service import (
    RedemptionService,
    get_redemption_service,
)
from redemption_service.app.services.subscriptions_service import (
    SubscriptionsService,
    get_subscriptions_service,
)
from redemption_service.tests.fakes import (
    NOW,
    FixedClock,
    InMemoryAccessCodeRepository,
    InMemorySubscriptionRepository,
)


REDEEM_URL = "/api/v1/access-codes/redeem"


@pytest.fixture
def code_repo() -> InMemoryAccessCodeRepository:
    return InMemoryAccessCodeRepository()


@pytest.fixture
def subscription_repo() -> InMemorySubscriptionRepository:
    return InMemorySubscriptionRepository()


@pytest.fixture
def app(
    code_repo: InMemoryAccessCodeRepository,
    subscription_repo: InMemorySubscriptionRepository,
) -> FastAPI:
    app = create_app()
    clock = FixedClock()
    app.dependency_overrides[get_redemption_service] = lambda: RedemptionService(
        code_repo=code_repo,
        subscription_repo=subscription_repo,
        clock=clock,
    )
    app.dependency_overrides[get_subscriptions_service] = lambda: (
        SubscriptionsService(repo=subscription_repo, clock=clock)
    )
    return app


@pytest.fixture
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client


# -------- POST /access-codes/redeem --------


def test_redeem_success(
    client: TestClient, code_repo: InMemoryAccessCodeRepository
) -> None:
    code_repo.add("NURSE-2026", duration_days=30)

    response = client.post(REDEEM_URL, json={"code": "nurse-2026", "userId": "user-001"})

    assert response.status_code == 200
    assert response.json() == {"success": True, "durationDays": 30}


def test_redeem_accepts_json_string_body(
    client: TestClient, code_repo: InMemoryAccessCodeRepository
) -> None:
    code_repo.add("NURSE-2026", duration_days=7)
    body = json.dumps(json.dumps({"code": "NURSE-2026", "userId": "user-001"}))

    response = client.post(
        REDEEM_URL, content=body, headers={"Content-Type": "application/json"}
    )

    assert response.status_code == 200
    assert response.json() == {"success": True, "durationDays": 7}


def test_redeem_invalid_json_returns_400(client: TestClient) -> None:
    response = client.post(
        REDEEM_URL, content="{oops", headers={"Content-Type": "application/json"}
    )

    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Invalid JSON payload"}


def test_redeem_missing_user_id_returns_400(
    client: TestClient, code_repo: InMemoryAccessCodeRepository
) -> None:
    response = client.post(REDEEM_URL, json={"code": "NURSE-2026"})

    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Missing code or userId"}
    assert code_repo.calls == []


def test_redeem_used_code_is_business_failure_with_200(
    client: TestClient, code_repo: InMemoryAccessCodeRepository
) -> None:
    code_repo.add("NURSE-2026", is_used=True, used_by_user_id="user-999")

    response = client.post(REDEEM_URL, json={"code": "NURSE-2026", "userId": "user-001"})

    assert response.status_code == 200
    assert response.json() == {
        "success": False,
        "message": "Code invalid or already used",
    }


def test_redeem_store_failure_returns_500(
    client: TestClient, code_repo: InMemoryAccessCodeRepository
) -> None:
    code_repo.add("NURSE-2026")
    code_repo.fail_next("claim", AutoReconnect("connection refused"))

    response = client.post(REDEEM_URL, json={"code": "NURSE-2026", "userId": "user-001"})

    assert response.status_code == 500
    assert response.json() == {"success": False, "message": "connection refused"}


def test_dependency_failure_is_reported_in_response_shape(app: FastAPI) -> None:
    def broken_service() -> RedemptionService:
        raise RuntimeError("failed to connect to MongoDB")

    app.dependency_overrides[get_redemption_service] = broken_service

    with TestClient(app, raise_server_exceptions=False) as client:
        response = client.post(
            REDEEM_URL, json={"code": "NURSE-2026", "userId": "user-001"}
        )

    assert response.status_code == 500
    assert response.json() == {
        "success": False,
        "message": "failed to connect to MongoDB",
    }


def test_malformed_body_is_rejected_before_connecting_to_store(app: FastAPI) -> None:
    # given: 실제 DI 체인을 쓰고, DB 연결만 실패하도록 바꾼다.
    database_calls: list[str] = []

    def unreachable_database() -> Database:
        database_calls.append("get_database")
        raise RuntimeError("failed to connect to MongoDB: timeout")

    app.dependency_overrides.pop(get_redemption_service)
    app.dependency_overrides[get_database] = unreachable_database

    with TestClient(app, raise_server_exceptions=False) as client:
        bad_body = client.post(
            REDEEM_URL,
            content=b"not json",
            headers={"Content-Type": "application/json"},
        )
        missing_field = client.post(REDEEM_URL, json={"code": "NURSE-2026"})

        # then: 잘못된 바디는 저장소에 닿기 전에 400 으로 끝난다.
        assert bad_body.status_code == 400
        assert bad_body.json() == {"success": False, "message": "Invalid JSON payload"}
        assert missing_field.status_code == 400
        assert missing_field.json() == {
            "success": False,
            "message": "Missing code or userId",
        }
        assert database_calls == []

        # when: 바디가 올바르면 그때 DB 의존성이 풀린다.
        valid = client.post(
            REDEEM_URL, json={"code": "NURSE-2026", "userId": "user-001"}
        )

    assert valid.status_code == 500
    assert database_calls == ["get_database"]


def test_dependency_failure_is_logged_with_traceback(
    app: FastAPI, caplog: pytest.LogCaptureFixture
) -> None:
    def broken_service() -> RedemptionService:
        raise RuntimeError("failed to connect to MongoDB")

    app.dependency_overrides[get_redemption_service] = broken_service
    caplog.set_level(logging.ERROR, logger="redemption_service.app.main")

    with TestClient(app, raise_server_exceptions=False) as client:
        client.post(REDEEM_URL, json={"code": "NURSE-2026", "userId": "user-001"})

    [record] = [
        r for r in caplog.records if r.name == "redemption_service.app.main"
    ]
    assert record.exc_info is not None
    assert isinstance(record.exc_info[1], RuntimeError)


def test_request_id_is_echoed_back(client: TestClient) -> None:
    response = client.post(
        REDEEM_URL,
        json={"code": "", "userId": "user-001"},
        headers={"X-Request-Id": "req-123"},
    )

    assert response.headers["X-Request-Id"] == "req-123"
    assert response.headers["X-Span-Id"] == "0"


# -------- GET /subscriptions/{user_id} --------


def test_subscription_status_for_active_user(
    client: TestClient, subscription_repo: InMemorySubscriptionRepository
) -> None:
    subscription_repo.add(
        "user-001",
        start_date=NOW - timedelta(days=3),
        end_date=NOW + timedelta(days=27),
    )

    response = client.get("/api/v1/subscriptions/user-001")

    assert response.status_code == 200
    body = response.json()
    assert body["userId"] == "user-001"
    assert body["isActive"] is True
    assert body["subscription"]["status"] == "ACTIVE"
    assert body["subscription"]["startDate"] == "2026-01-12T12:00:00.000Z"
    assert body["subscription"]["endDate"] == "2026-02-11T12:00:00.000Z"
    assert body["subscription"]["autoRenew"] is False


def test_subscription_status_for_lapsed_user(
    client: TestClient, subscription_repo: InMemorySubscriptionRepository
) -> None:
    subscription_repo.add(
        "user-001",
        end_date=NOW + timedelta(days=3),
        status=SubscriptionStatus.EXPIRED,
    )

    response = client.get("/api/v1/subscriptions/user-001")

    assert response.json()["isActive"] is False


def test_subscription_status_for_unknown_user(client: TestClient) -> None:
    response = client.get("/api/v1/subscriptions/nobody")

    assert response.status_code == 200
    assert response.json() == {
        "userId": "nobody",
        "subscription": None,
        "isActive": False,
    }


def test_health(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
