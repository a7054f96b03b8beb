"""Scenario catalogue for the mercado API.

Each builder draws fresh fake data, so every run provisions its own market
and fruit instead of relying on ids that may have been deleted meanwhile.
"""

import re
from collections.abc import Callable
from typing import Any

from faker import Faker

from .client import FRUITS_PATH, MARKETS_PATH
from .data import (
    fruit_payload,
    invalid_cnpj_payload,
    market_payload,
    unnamed_market_payload,
)
from .matching import ANY
from .results import Phase
from .scenario import Scenario, Step, ref

# Ids the remote API is assumed never to hand out
DEFAULT_MISSING_ID = 99999

ANYTHING = re.compile(r".*")

MARKET_SHAPE = {"id": ANYTHING, "nome": ANYTHING, "endereco": ANYTHING, "cnpj": ANYTHING}
FRUIT_SHAPE = {"id": ANYTHING, "nome": ANYTHING, "preco": ANYTHING, "quantidade": ANYTHING}

MARKET_ITEM_PATH = MARKETS_PATH + "/{mercado_id}"
FRUIT_LIST_PATH = FRUITS_PATH
FRUIT_ITEM_PATH = FRUITS_PATH + "/{fruta_id}"


def no_market_created(body: Any) -> bool:
    """A rejected create must not hand out a market."""
    return not (isinstance(body, dict) and body.get("novoMercado"))


def build_market_scenario(fake: Faker, missing_id: int = DEFAULT_MISSING_ID) -> Scenario:
    """Market CRUD, validation errors and unknown-id handling."""
    created = market_payload(fake)
    updated = market_payload(fake)
    unknown = f"{MARKETS_PATH}/{missing_id}"

    return Scenario(
        "mercado",
        description="CRUD operations on /mercado",
        steps=[
            Step(
                "create market",
                "POST",
                MARKETS_PATH,
                201,
                body=created,
                expected_shape={"novoMercado": {"id": ANY}},
                extract={"mercado_id": "novoMercado.id"},
            ),
            Step("list markets", "GET", MARKETS_PATH, 200, expected_shape=[MARKET_SHAPE]),
            Step(
                "get market by id",
                "GET",
                MARKET_ITEM_PATH,
                200,
                expected_shape={
                    "id": ref("mercado_id"),
                    "nome": created["nome"],
                    "endereco": created["endereco"],
                    "cnpj": created["cnpj"],
                },
            ),
            Step(
                "get market by id again",
                "GET",
                MARKET_ITEM_PATH,
                200,
                expected_shape={
                    "id": ref("mercado_id"),
                    "nome": created["nome"],
                    "endereco": created["endereco"],
                    "cnpj": created["cnpj"],
                },
            ),
            Step("update market", "PUT", MARKET_ITEM_PATH, 200, body=updated),
            Step(
                "get updated market",
                "GET",
                MARKET_ITEM_PATH,
                200,
                expected_shape={"id": ref("mercado_id"), "nome": updated["nome"]},
            ),
            Step(
                "reject invalid cnpj",
                "POST",
                MARKETS_PATH,
                400,
                body=invalid_cnpj_payload(fake),
                expected_shape=no_market_created,
            ),
            Step(
                "reject empty name",
                "POST",
                MARKETS_PATH,
                400,
                body=unnamed_market_payload(fake),
                expected_shape=no_market_created,
            ),
            Step("get unknown market", "GET", unknown, 404),
            Step("update unknown market", "PUT", unknown, 404, body=market_payload(fake)),
            Step("delete unknown market", "DELETE", unknown, 404),
            Step(
                "validate market list structure",
                "GET",
                MARKETS_PATH,
                200,
                expected_shape=[MARKET_SHAPE],
            ),
            Step("delete market", "DELETE", MARKET_ITEM_PATH, 200),
            Step("get deleted market", "GET", MARKET_ITEM_PATH, 404),
        ],
    )


def build_fruit_scenario(fake: Faker, missing_id: int = DEFAULT_MISSING_ID) -> Scenario:
    """Fruit CRUD under a market provisioned for this run."""
    banana = {"nome": "Banana", "preco": "1.50", "quantidade": 30}

    return Scenario(
        "frutas",
        description="CRUD operations on /mercado/{id}/produtos/hortifruit/frutas",
        steps=[
            Step(
                "provision market",
                "POST",
                MARKETS_PATH,
                201,
                body=market_payload(fake),
                extract={"mercado_id": "novoMercado.id"},
                phase=Phase.SETUP,
            ),
            Step(
                "create fruit",
                "POST",
                FRUIT_LIST_PATH,
                201,
                body=fruit_payload(fake),
                expected_shape={"fruta": {"id": ANY}},
                extract={"fruta_id": "fruta.id"},
            ),
            Step(
                "list fruits",
                "GET",
                FRUIT_LIST_PATH,
                200,
                expected_shape=[{**FRUIT_SHAPE, "id": ref("fruta_id")}],
            ),
            Step("update fruit", "PUT", FRUIT_ITEM_PATH, 200, body=banana),
            Step("delete fruit", "DELETE", FRUIT_ITEM_PATH, 200),
            Step("get deleted fruit", "GET", FRUIT_ITEM_PATH, 404),
            Step(
                "get unknown fruit",
                "GET",
                FRUIT_LIST_PATH + f"/{missing_id}",
                404,
            ),
            Step(
                "remove provisioned market",
                "DELETE",
                MARKET_ITEM_PATH,
                200,
                phase=Phase.TEARDOWN,
            ),
        ],
    )


ScenarioBuilder = Callable[..., Scenario]

SCENARIOS: dict[str, ScenarioBuilder] = {
    "mercado": build_market_scenario,
    "frutas": build_fruit_scenario,
}


def build_scenarios(
    names: list[str] | tuple[str, ...],
    fake: Faker,
    missing_id: int = DEFAULT_MISSING_ID,
) -> list[Scenario]:
    """Build the named scenarios (all of them when ``names`` is empty).

    Raises:
        KeyError: If a name is not in the catalogue
    """
    selected = list(names) or list(SCENARIOS)
    unknown = [name for name in selected if name not in SCENARIOS]
    if unknown:
        raise KeyError(f"Unknown scenario(s): {', '.join(unknown)}")
    return [SCENARIOS[name](fake, missing_id=missing_id) for name in selected]
