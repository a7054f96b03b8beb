"""Fake request payloads for market and fruit scenarios."""

from typing import Any

from faker import Faker

DEFAULT_LOCALE = "pt_BR"

FRUIT_NAMES = [
    "Abacaxi",
    "Banana",
    "Caqui",
    "Goiaba",
    "Laranja",
    "Limão",
    "Maçã",
    "Mamão",
    "Manga",
    "Maracujá",
    "Melancia",
    "Morango",
    "Pera",
    "Uva",
]

INVALID_CNPJ = "123"


def make_faker(locale: str = DEFAULT_LOCALE, seed: int | None = None) -> Faker:
    """Create a Faker instance, seeded when reproducible data is wanted."""
    fake = Faker(locale)
    if seed is not None:
        fake.seed_instance(seed)
    return fake


def cnpj(fake: Faker) -> str:
    """Return a 14-digit numeric tax id with no leading zero."""
    return fake.numerify("%" + "#" * 13)


def market_payload(fake: Faker) -> dict[str, Any]:
    """Valid market creation/update body."""
    return {
        "cnpj": cnpj(fake),
        "endereco": fake.street_address(),
        "nome": fake.company(),
    }


def invalid_cnpj_payload(fake: Faker) -> dict[str, Any]:
    """Market body the API must reject for its malformed CNPJ."""
    payload = market_payload(fake)
    payload["cnpj"] = INVALID_CNPJ
    return payload


def unnamed_market_payload(fake: Faker) -> dict[str, Any]:
    """Market body the API must reject for its empty name."""
    payload = market_payload(fake)
    payload["nome"] = ""
    return payload


def fruit_payload(fake: Faker) -> dict[str, Any]:
    """Valid fruit creation body; ``preco`` is a two-decimal string."""
    price = fake.pyfloat(min_value=0.5, max_value=50, right_digits=2)
    return {
        "nome": fake.random_element(FRUIT_NAMES),
        "preco": f"{price:.2f}",
        "quantidade": fake.random_int(min=1, max=100),
    }
