import pytest

from errors import AlreadyConfirmed, InvalidArgument, NotConfirmed, NotRegistered
from models import ConfirmedEntry, RefKind, SoloRegistration
from registration_service import register_solo
from replacement_service import replace_confirmed, replacement_mode
from slot_allocator import confirm_participant


def _confirmed(db, event, bucket="open"):
    rows = db.query(ConfirmedEntry).filter(ConfirmedEntry.event_id == event.id, ConfirmedEntry.bucket == bucket).all()
    return {(row.ref_kind, row.ref_id) for row in rows}


@pytest.fixture
def full_male_bucket(db, factory):
    event = factory.event(name="Mr. and Ms. Fest", slots={"male": 1, "female": 1})
    p1 = factory.ncp("NCP001")
    p2 = factory.ncp("NCP002")
    register_solo(db, "NCP001", event.id, bucket="male")
    register_solo(db, "NCP002", event.id, bucket="male")
    confirm_participant(db, "NCP001", event.id, bucket="male")
    db.refresh(p1)
    return event, p1, p2


def test_replacement_swaps_the_confirmed_participant(db, factory, slots_of, full_male_bucket):
    event, p1, p2 = full_male_bucket
    assert slots_of(event, "male") == 0
    departing_before = p1.points

    result = replace_confirmed(db, "NCP001", event.id, "NCP002", bucket="male")

    assert result.slots_remaining == 0
    assert slots_of(event, "male") == 0
    assert _confirmed(db, event, "male") == {(RefKind.NCP, p2.id)}
    departing_registration = (
        db.query(SoloRegistration)
        .filter(SoloRegistration.ref_kind == RefKind.NCP, SoloRegistration.ref_id == p1.id)
        .one()
    )
    assert departing_registration.confirmed is False
    db.refresh(p1)
    db.refresh(p2)
    assert p1.points == departing_before - 5
    assert p2.points == 10


def test_replacement_point_effects_on_scalar_event(db, factory, slots_of):
    event = factory.event(slots=2)
    p1 = factory.ncp("NCP001")
    p2 = factory.ncp("NCP002")
    register_solo(db, "NCP001", event.id)
    register_solo(db, "NCP002", event.id)
    confirm_participant(db, "NCP001", event.id)
    before = slots_of(event)

    result = replace_confirmed(db, "NCP001", event.id, "NCP002")

    assert result.points_awarded == 10
    assert result.points_deducted == 5
    assert slots_of(event) == before
    db.refresh(p1)
    db.refresh(p2)
    assert p1.points == 10 - 5
    assert p2.points == 10


def test_self_replacement_is_rejected(db, full_male_bucket):
    event, _, _ = full_male_bucket
    with pytest.raises(InvalidArgument):
        replace_confirmed(db, "NCP001", event.id, "ncp001", bucket="male")


def test_departing_must_be_confirmed(db, slots_of, full_male_bucket):
    event, _, _ = full_male_bucket
    with pytest.raises(NotConfirmed):
        replace_confirmed(db, "NCP002", event.id, "NCP001", bucket="male")
    assert slots_of(event, "male") == 0


def test_strict_mode_rolls_back_the_inflated_slot(db, factory, slots_of, full_male_bucket):
    event, p1, _ = full_male_bucket
    factory.ncp("NCP003")

    with pytest.raises(NotRegistered):
        replace_confirmed(db, "NCP001", event.id, "NCP003", bucket="male", mode="strict")

    assert slots_of(event, "male") == 0
    assert _confirmed(db, event, "male") == {(RefKind.NCP, p1.id)}


def test_lenient_mode_deflates_after_not_registered(db, factory, slots_of, full_male_bucket):
    event, p1, _ = full_male_bucket
    factory.ncp("NCP003")

    with pytest.raises(NotRegistered):
        replace_confirmed(db, "NCP001", event.id, "NCP003", bucket="male", mode="lenient")

    assert slots_of(event, "male") == 0
    assert _confirmed(db, event, "male") == {(RefKind.NCP, p1.id)}


def test_lenient_mode_leaves_extra_slot_on_other_failures(db, factory, slots_of):
    event = factory.event(slots=3)
    factory.ncp("NCP001")
    factory.ncp("NCP002")
    register_solo(db, "NCP001", event.id)
    register_solo(db, "NCP002", event.id)
    confirm_participant(db, "NCP001", event.id)
    confirm_participant(db, "NCP002", event.id)
    assert slots_of(event) == 1

    with pytest.raises(AlreadyConfirmed):
        replace_confirmed(db, "NCP001", event.id, "NCP002", mode="lenient")

    assert slots_of(event) == 2


def test_replacement_mode_reads_environment(monkeypatch):
    monkeypatch.setenv("REPLACEMENT_MODE", "Lenient")
    assert replacement_mode() == "lenient"
    monkeypatch.delenv("REPLACEMENT_MODE")
    assert replacement_mode() == "strict"
    monkeypatch.setenv("REPLACEMENT_MODE", "sometimes")
    with pytest.raises(RuntimeError):
        replacement_mode()


def test_sponsor_with_a_confirmed_entry_can_arrive_with_its_pending_one(db, factory, slots_of):
    event = factory.event(slots=2)
    factory.cc("CC001")
    factory.ncp("NCP001")
    asha = register_solo(db, "CC001", event.id, identity=factory.identity("Asha", "Rao"))
    ravi = register_solo(db, "CC001", event.id, identity=factory.identity("Ravi", "Kumar"))
    register_solo(db, "NCP001", event.id)
    confirm_participant(db, "CC001", event.id)
    confirm_participant(db, "NCP001", event.id)
    assert slots_of(event) == 0

    result = replace_confirmed(db, "NCP001", event.id, "CC001")

    assert result.arriving_id == "CC001"
    assert slots_of(event) == 0
    assert _confirmed(db, event) == {(RefKind.SUB, asha.ref_id), (RefKind.SUB, ravi.ref_id)}
    db.refresh(ravi)
    assert ravi.confirmed is True


def test_replacement_can_name_the_arriving_registration(db, factory, slots_of):
    event = factory.event(slots=1)
    factory.cc("CC001")
    factory.ncp("NCP001")
    register_solo(db, "CC001", event.id, identity=factory.identity("Asha", "Rao"))
    ravi = register_solo(db, "CC001", event.id, identity=factory.identity("Ravi", "Kumar"))
    register_solo(db, "NCP001", event.id)
    confirm_participant(db, "NCP001", event.id)

    replace_confirmed(db, "NCP001", event.id, "CC001", registration_id=ravi.id)

    assert _confirmed(db, event) == {(RefKind.SUB, ravi.ref_id)}
    assert slots_of(event) == 0
