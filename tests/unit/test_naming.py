from __future__ import annotations

import pytest
from sqlalchemy.orm import Session

from fixture_builder.naming import Namer, format_index, record_identity, snake_case
from tests.conftest import Apprentice, MagicalCreature

NAME_FIELDS = ["unique_name", "display_name", "name", "title", "username", "login"]


def _email_rule(row, index):
    return f"{row['email'].split('@')[0]}_{index}"


def test_format_index_is_zero_padded() -> None:
    assert format_index(1) == "001"
    assert format_index(42) == "042"
    assert format_index(1234) == "1234"


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("Uni", "uni"),
        ("King Bob", "king_bob"),
        ("HTTPServer", "http_server"),
        ("already_snake", "already_snake"),
        ("dash-ed value!", "dash_ed_value"),
    ],
)
def test_snake_case(value: str, expected: str) -> None:
    assert snake_case(value) == expected


def test_rule_receives_index_verbatim() -> None:
    namer = Namer({"users": _email_rule}, NAME_FIELDS)

    assert namer.resolve_name("users", {"email": "bob@example.com"}, "000") == "bob_000"


def test_rules_apply_only_to_their_own_table() -> None:
    first = Namer({"users": _email_rule, "accounts": lambda row, index: "account"}, NAME_FIELDS)
    second = Namer({"accounts": lambda row, index: "account", "users": _email_rule}, NAME_FIELDS)

    for namer in (first, second):
        assert namer.resolve_name("users", {"email": "bob@example.com"}, "001") == "bob_001"
        assert namer.resolve_name("accounts", {"email": "bob@example.com"}, "001") == "account"


def test_rule_result_is_converted_to_string() -> None:
    namer = Namer({"orders": lambda row, index: row["id"]}, NAME_FIELDS)

    assert namer.resolve_name("orders", {"id": 7}, "001") == "7"


def test_inferred_names_follow_field_order() -> None:
    namer = Namer({}, NAME_FIELDS)

    assert namer.resolve_name("people", {"title": "Dr", "name": "Jane Doe"}, "001") == "jane_doe"
    assert namer.resolve_name("people", {"name": "", "login": "jd"}, "002") == "jd"


def test_inferred_names_are_made_unique_per_table() -> None:
    namer = Namer({}, NAME_FIELDS)

    assert namer.resolve_name("creatures", {"name": "Uni"}, "001") == "uni"
    assert namer.resolve_name("creatures", {"name": "Uni"}, "002") == "uni_1"
    assert namer.resolve_name("creatures", {"name": "Uni"}, "003") == "uni_2"
    assert namer.resolve_name("horses", {"name": "Uni"}, "001") == "uni"


def test_inferred_suffix_skips_keys_already_taken() -> None:
    namer = Namer({}, ["name"])

    keys = [
        namer.resolve_name("creatures", {"name": name}, format_index(index))
        for index, name in enumerate(["Uni 2", "Uni", "Uni"], start=1)
    ]

    assert keys == ["uni_2", "uni_1", "uni_3"]


def test_fallback_is_table_and_index() -> None:
    namer = Namer({}, NAME_FIELDS)

    assert namer.resolve_name("wands", {"wood": "holly"}, "001") == "wands_001"


def test_no_name_fields_means_no_inference() -> None:
    namer = Namer({}, [])

    assert namer.resolve_name("creatures", {"name": "Uni"}, "004") == "creatures_004"


def test_explicit_name_beats_rule() -> None:
    namer = Namer({"users": _email_rule}, NAME_FIELDS)
    namer.populate_custom_names("users", {(1,): "admin"})

    assert namer.resolve_name("users", {"email": "bob@example.com"}, "001", identity=(1,)) == "admin"
    assert namer.resolve_name("users", {"email": "bob@example.com"}, "002", identity=(2,)) == "bob_002"


class TestExplicitNames:
    """Naming saved records by hand."""

    def test_saved_record_is_named(self, engine) -> None:
        namer = Namer({}, NAME_FIELDS)
        with Session(engine) as session:
            creature = MagicalCreature(name="robert", species="gnome")
            session.add(creature)
            session.flush()

            assert namer.name("king_of_gnomes", creature) == (creature,)
            assert namer.custom_names == {("magical_creatures", (creature.id,)): "king_of_gnomes"}

    def test_same_name_in_different_tables(self, engine) -> None:
        namer = Namer({}, NAME_FIELDS)
        with Session(engine) as session:
            creature = MagicalCreature(name="robert", species="gnome")
            apprentice = Apprentice(email="robert@example.com")
            session.add_all([creature, apprentice])
            session.flush()

            namer.name("robert", creature, apprentice)

            assert set(namer.custom_names.values()) == {"robert"}
            assert len(namer.custom_names) == 2

    def test_unsaved_record_is_rejected(self) -> None:
        namer = Namer({}, NAME_FIELDS)

        with pytest.raises(ValueError, match="has not been saved"):
            namer.name("draft", MagicalCreature(name="draft", species="imp"))

    def test_blank_name_is_rejected(self, engine) -> None:
        namer = Namer({}, NAME_FIELDS)
        with Session(engine) as session:
            creature = MagicalCreature(name="robert", species="gnome")
            session.add(creature)
            session.flush()

            with pytest.raises(ValueError, match="blank"):
                namer.name("  ", creature)

    def test_renaming_a_record_is_rejected(self, engine) -> None:
        namer = Namer({}, NAME_FIELDS)
        with Session(engine) as session:
            creature = MagicalCreature(name="robert", species="gnome")
            session.add(creature)
            session.flush()
            namer.name("king", creature)

            namer.name("king", creature)
            with pytest.raises(ValueError, match="already named"):
                namer.name("queen", creature)

    def test_record_identity_of_plain_values(self) -> None:
        assert record_identity("not a record") is None
        assert record_identity(MagicalCreature(name="x", species="y")) is None
