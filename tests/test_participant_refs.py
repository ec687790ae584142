import pytest

from errors import InvalidArgument
from identifier_rules import ensure_valid_phone, is_valid_phone, normalize_external_id, normalize_name
from models import RefKind, SoloRegistration
from participant_refs import Placeholder, Resolved, assign_ref, is_placeholder, ref_matches, ref_of


def test_placeholder_is_stored_under_the_sponsor():
    row = SoloRegistration()
    assign_ref(row, Placeholder(owner_id=7))

    assert (row.ref_kind, row.ref_id) == (RefKind.PLACEHOLDER, 7)
    assert ref_of(row) == Placeholder(owner_id=7)
    assert is_placeholder(ref_of(row))


def test_resolved_refs_compare_by_kind_and_id():
    row = SoloRegistration()
    assign_ref(row, Resolved(kind=RefKind.SUB, id=3))

    assert ref_matches(row, Resolved(RefKind.SUB, 3))
    assert not ref_matches(row, Resolved(RefKind.NCP, 3))
    assert not is_placeholder(ref_of(row))


def test_identifier_normalization():
    assert normalize_external_id("  ncp001 ") == "NCP001"
    assert normalize_external_id(None) == ""
    assert normalize_name("  Asha   Rao ") == "Asha Rao"


def test_phone_rules():
    assert is_valid_phone("98765 43210")
    assert not is_valid_phone("1234567890")
    assert ensure_valid_phone("98765-43210", "Asha") == "9876543210"
    with pytest.raises(InvalidArgument):
        ensure_valid_phone("12345", "Asha")
