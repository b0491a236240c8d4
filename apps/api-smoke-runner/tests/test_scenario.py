from __future__ import annotations

import pytest

from api_smoke_runner.errors import RunStateError, ScenarioDefinitionError
from api_smoke_runner.models import RequestOutcome, ResponseEnvelope, RunState
from api_smoke_runner.scenario import Step, TestAccount, build_order_api_scenario, validate_scenario


def test_default_scenario_order_and_gates() -> None:
    steps = build_order_api_scenario(TestAccount(email="a@example.com"), sku="SKU-1")

    assert [step.name for step in steps] == [
        "health check",
        "register user",
        "login",
        "list users",
        "get user by id",
        "update user",
        "create product",
        "list products",
        "get product by id",
        "search products",
        "list products by category",
        "update product",
        "patch product",
        "update product quantity",
        "delete product",
        "delete user",
    ]
    assert [step.name for step in steps if step.fatal] == ["login"]
    assert [step.name for step in steps if step.skip_unless] == ["get product by id"]
    assert not steps[0].auth and not steps[1].auth and not steps[2].auth
    assert all(step.auth for step in steps[3:])


def test_request_bodies_use_run_account() -> None:
    account = TestAccount(email="a@example.com", password="pw")
    steps = {step.name: step for step in build_order_api_scenario(account, sku="SKU-1")}
    state = RunState()

    assert steps["register user"].build_body(state) == {"name": "Test User", "email": "a@example.com", "password": "pw"}
    assert steps["login"].build_body(state) == {"email": "a@example.com", "password": "pw"}
    assert steps["create product"].build_body(state)["sku"] == "SKU-1"
    assert steps["update product quantity"].build_body(state) == {"quantity": 100}
    assert steps["delete user"].build_body(state) is None


def test_requires_derives_from_path_and_auth() -> None:
    step = Step("get", "GET", "/products/{product_id}/quantity", auth=True)

    assert step.requires == ("credential", "product_id")
    assert step.render_path(RunState(product_id="p9")) == "/products/p9/quantity"
    assert step.render_path(RunState()) == "/products//quantity"


def test_validate_rejects_consumer_before_producer() -> None:
    steps = [
        Step("get user", "GET", "/users/{user_id}"),
        Step("register", "POST", "/auth/register", produces={"user_id": "data.id"}),
    ]

    with pytest.raises(ScenarioDefinitionError, match="no earlier step produces"):
        validate_scenario(steps)


def test_validate_rejects_duplicate_producers_and_names() -> None:
    with pytest.raises(ScenarioDefinitionError, match="produced by both"):
        validate_scenario(
            [
                Step("a", "POST", "/a", produces={"product_id": "data.id"}),
                Step("b", "POST", "/b", produces={"product_id": "data.id"}),
            ]
        )
    with pytest.raises(ScenarioDefinitionError, match="Duplicate"):
        validate_scenario([Step("a", "GET", "/a"), Step("a", "GET", "/b")])


def test_validate_rejects_unknown_fields() -> None:
    with pytest.raises(ScenarioDefinitionError):
        validate_scenario([Step("a", "GET", "/orders/{order_id}")])


def test_extract_reports_missing_fields() -> None:
    step = Step("create", "POST", "/products", produces={"product_id": "data.id"})

    captured, missing = step.extract(RequestOutcome(status_code=201, body={"data": {"id": 7}}, success=True))
    assert captured == {"product_id": "7"}
    assert missing == []

    captured, missing = step.extract(RequestOutcome(status_code=201, body={"message": "ok"}, success=True))
    assert captured == {}
    assert missing == ["product_id"]


def test_run_state_fields_are_set_once() -> None:
    state = RunState().merge({"user_id": "u1"})

    assert state.user_id == "u1"
    assert state.merge({}) is state
    with pytest.raises(RunStateError):
        state.merge({"user_id": "u2"})
    with pytest.raises(RunStateError):
        state.merge({"order_id": "o1"})


def test_envelope_tolerates_missing_and_mistyped_fields() -> None:
    envelope = ResponseEnvelope.from_body({"message": "ok", "count": "3", "data": [1, 2]})

    assert envelope.message == "ok"
    assert envelope.count is None
    assert envelope.lookup("data.id") is None
    assert envelope.lookup("token") is None
    assert ResponseEnvelope.from_body(["not", "an", "object"]) == ResponseEnvelope()
