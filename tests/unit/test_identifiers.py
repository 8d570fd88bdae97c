from __future__ import annotations
import pytest

from aqua_tracker.domain.errors import InvalidIdentifier, UnresolvedItemType
from aqua_tracker.domain.identifiers import PREFIX_TYPES, TASK_PLACEHOLDER, ItemIdentifier, parse, resolve_item_id
from tests.unit._fakes_tracker import make_session


@pytest.mark.parametrize("prefix,item_type", sorted(PREFIX_TYPES.items()))
@pytest.mark.parametrize("digits", ["1", "42", "0007", "123456789"])
def test_prefixed_ids_are_classified(prefix, item_type, digits):
    assert parse(prefix + digits) == ItemIdentifier(numeric_id=digits, item_type=item_type)


@pytest.mark.parametrize("raw", ["tc12", "Tc12", "tC12", " TC12 "])
def test_prefix_is_case_insensitive_and_trimmed(raw):
    assert parse(raw) == ItemIdentifier("12", "TestCase")


def test_known_prefixes():
    assert parse("RQ5").item_type == "Requirement"
    assert parse("DF5").item_type == "Defect"
    assert parse("TC5").item_type == "TestCase"


@pytest.mark.parametrize("raw", ["TC12", "DF9", "1234", "anything"])
def test_explicit_type_always_wins(raw):
    assert parse(raw, "Requirement").item_type == "Requirement"


def test_explicit_type_keeps_numeric_extraction():
    assert parse("TC123", "Defect") == ItemIdentifier("123", "Defect")


def test_unprefixed_id_with_explicit_type_is_kept_unchanged():
    assert parse("98765", "TestCase") == ItemIdentifier("98765", "TestCase")
    assert parse("XY12", "Defect").numeric_id == "XY12"


@pytest.mark.parametrize("raw", ["12345", "XY12", "TC", "TC12a"])
def test_unprefixed_id_without_type_is_unresolved(raw):
    with pytest.raises(UnresolvedItemType):
        parse(raw)


@pytest.mark.parametrize("explicit", [None, "TestCase"])
def test_empty_id_is_invalid(explicit):
    with pytest.raises(InvalidIdentifier) as exc:
        parse("", explicit)
    assert not isinstance(exc.value, UnresolvedItemType)


def test_missing_id_and_type_is_unresolved():
    with pytest.raises(UnresolvedItemType):
        parse(None, None)
    # unresolved is also an invalid identifier
    assert issubclass(UnresolvedItemType, InvalidIdentifier)


def test_missing_id_with_type_is_invalid():
    with pytest.raises(InvalidIdentifier):
        parse(None, "TestCase")


def test_resolve_item_id_falls_back_to_session_task():
    session = make_session(task_id="TC77")
    assert resolve_item_id("RQ1", session) == "RQ1"
    assert resolve_item_id(None, session) == "TC77"
    assert resolve_item_id(TASK_PLACEHOLDER, session) == "TC77"
    assert resolve_item_id(None, make_session()) is None
