"""Step descriptors and the fixed order-management API scenario."""

from __future__ import annotations

from dataclasses import dataclass, field
from string import Formatter
from typing import Any, Callable, Mapping, Optional, Sequence
import time

from pydantic import BaseModel

from .errors import ScenarioDefinitionError
from .models import RUN_STATE_FIELDS, RequestOutcome, ResponseEnvelope, RunState

SCENARIO_ID = "order-api-smoke"

BodyBuilder = Callable[[RunState], Optional[dict[str, Any]]]
Describer = Callable[[ResponseEnvelope], Optional[str]]


def _no_body(state: RunState) -> None:
    return None


def _message(envelope: ResponseEnvelope) -> Optional[str]:
    return envelope.message


@dataclass(frozen=True)
class Step:
    """Declarative description of one request in the scenario."""

    name: str
    method: str
    path: str
    body: BodyBuilder = _no_body
    auth: bool = False
    produces: Mapping[str, str] = field(default_factory=dict)
    skip_unless: tuple[str, ...] = ()
    fatal: bool = False
    describe: Describer = _message
    check: Optional[Callable[[RequestOutcome], bool]] = None

    @property
    def path_fields(self) -> tuple[str, ...]:
        return tuple(name for _, name, _, _ in Formatter().parse(self.path) if name)

    @property
    def requires(self) -> tuple[str, ...]:
        fields = list(self.path_fields)
        if self.auth:
            fields.insert(0, "credential")
        for name in self.skip_unless:
            if name not in fields:
                fields.append(name)
        return tuple(fields)

    def render_path(self, state: RunState) -> str:
        """Substitute captured identifiers; unset values render as empty strings."""

        values = {name: getattr(state, name) or "" for name in self.path_fields}
        return self.path.format(**values)

    def build_body(self, state: RunState) -> Optional[dict[str, Any]]:
        return self.body(state)

    def evaluate(self, outcome: RequestOutcome) -> bool:
        if self.check is not None:
            return self.check(outcome)
        return outcome.success

    def extract(self, outcome: RequestOutcome) -> tuple[dict[str, str], list[str]]:
        """Return captured values and the names of fields absent from the response."""

        envelope = outcome.envelope
        captured: dict[str, str] = {}
        missing: list[str] = []
        for state_field, response_path in self.produces.items():
            value = envelope.lookup(response_path)
            if value is None or value == "":
                missing.append(state_field)
            else:
                captured[state_field] = str(value)
        return captured, missing


def validate_scenario(steps: Sequence[Step]) -> None:
    """Check that every required field is produced by an earlier step, exactly once."""

    produced: dict[str, str] = {}
    names: set[str] = set()
    for step in steps:
        if step.name in names:
            raise ScenarioDefinitionError(f"Duplicate step name '{step.name}'")
        names.add(step.name)
        for name in step.requires:
            if name not in RUN_STATE_FIELDS:
                raise ScenarioDefinitionError(f"Step '{step.name}' requires unknown field '{name}'")
            if name not in produced:
                raise ScenarioDefinitionError(
                    f"Step '{step.name}' requires '{name}' which no earlier step produces"
                )
        for name in step.produces:
            if name not in RUN_STATE_FIELDS:
                raise ScenarioDefinitionError(f"Step '{step.name}' produces unknown field '{name}'")
            if name in produced:
                raise ScenarioDefinitionError(
                    f"Field '{name}' is produced by both '{produced[name]}' and '{step.name}'"
                )
            produced[name] = step.name


class TestAccount(BaseModel):
    """Throwaway user registered for a single run."""

    __test__ = False

    name: str = "Test User"
    email: str
    password: str = "Test@123456"

    @classmethod
    def generate(cls) -> TestAccount:
        return cls(email=f"test{_millis()}@example.com")


def _millis() -> int:
    return int(time.time() * 1000)


def _found(noun: str) -> Describer:
    def describe(envelope: ResponseEnvelope) -> str:
        return f"Found {envelope.count or 0} {noun}"

    return describe


def _data_field(key: str) -> Describer:
    def describe(envelope: ResponseEnvelope) -> Optional[str]:
        value = envelope.lookup(f"data.{key}")
        return str(value) if value is not None else None

    return describe


def _issued_token(outcome: RequestOutcome) -> bool:
    return outcome.success and bool(outcome.envelope.token)


def build_order_api_scenario(account: TestAccount | None = None, sku: str | None = None) -> list[Step]:
    """Build the register/login/users/products/cleanup scenario."""

    account = account or TestAccount.generate()
    sku = sku or f"TEST-LAP-{_millis()}"

    steps = [
        Step("health check", "GET", "/hello"),
        Step(
            "register user",
            "POST",
            "/auth/register",
            body=lambda state: {"name": account.name, "email": account.email, "password": account.password},
            produces={"user_id": "data.id"},
        ),
        Step(
            "login",
            "POST",
            "/auth/login",
            body=lambda state: {"email": account.email, "password": account.password},
            produces={"credential": "token"},
            check=_issued_token,
            fatal=True,
        ),
        Step("list users", "GET", "/users", auth=True, describe=_found("users")),
        Step("get user by id", "GET", "/users/{user_id}", auth=True, describe=_data_field("email")),
        Step(
            "update user",
            "PUT",
            "/users/{user_id}",
            body=lambda state: {"name": f"{account.name} Updated"},
            auth=True,
        ),
        Step(
            "create product",
            "POST",
            "/products",
            body=lambda state: {
                "name": "Test Laptop",
                "description": "High performance test laptop",
                "price": 1299.99,
                "quantity": 50,
                "category": "Electronics",
                "sku": sku,
            },
            auth=True,
            produces={"product_id": "data.id"},
        ),
        Step("list products", "GET", "/products", auth=True, describe=_found("products")),
        Step(
            "get product by id",
            "GET",
            "/products/{product_id}",
            auth=True,
            skip_unless=("product_id",),
            describe=_data_field("name"),
        ),
        Step("search products", "GET", "/products/search?q=laptop", auth=True, describe=_found("results")),
        Step(
            "list products by category",
            "GET",
            "/products/category/Electronics",
            auth=True,
            describe=_found("products"),
        ),
        Step(
            "update product",
            "PUT",
            "/products/{product_id}",
            body=lambda state: {
                "name": "Test Gaming Laptop",
                "description": "Updated gaming laptop",
                "price": 1599.99,
                "quantity": 30,
            },
            auth=True,
        ),
        Step(
            "patch product",
            "PATCH",
            "/products/{product_id}",
            body=lambda state: {"price": 1499.99},
            auth=True,
        ),
        Step(
            "update product quantity",
            "PUT",
            "/products/{product_id}/quantity",
            body=lambda state: {"quantity": 100},
            auth=True,
        ),
        Step("delete product", "DELETE", "/products/{product_id}", auth=True),
        Step("delete user", "DELETE", "/users/{user_id}", auth=True),
    ]
    validate_scenario(steps)
    return steps
