from openpyxl import load_workbook

from confirmation_listing import build_confirmation_workbook, list_event_confirmations
from registration_service import register_solo, register_team
from slot_allocator import confirm_participant
from walkin_service import admit_walk_in_solo, admit_walk_in_team


def test_solo_listing_splits_pending_confirmed_and_walk_ins(db, factory):
    event = factory.event(slots=4)
    factory.cc("CC001")
    factory.ncp("NCP001")
    register_solo(db, "CC001", event.id, is_dummy=True)
    register_solo(db, "CC001", event.id, identity=factory.identity("Asha", "Rao"))
    register_solo(db, "NCP001", event.id)
    confirm_participant(db, "CC001", event.id)
    walk_in = admit_walk_in_solo(db, factory.identity("Kiran", "Das"), event.id)

    [listing] = list_event_confirmations(db, event.id)

    bucket = listing["buckets"]["open"]
    assert listing["slot_scheme"] == "scalar"
    assert bucket["capacity"] == 4
    assert bucket["slots"] == 2
    assert [row["participant"] for row in bucket["confirmed"]] == ["dummy"]
    assert [row["owner_id"] for row in bucket["confirmed"]] == ["CC001"]
    assert [row["participant"] for row in bucket["pending"]] == ["Asha Rao", "NCP001"]
    assert [row["participant"] for row in bucket["walk_ins"]] == walk_in.otse_ids


def test_team_listing_places_walk_in_teams_apart(db, factory):
    event = factory.event(name="Relay", slots=3, event_format="TEAM")
    factory.ncp("NCP001")
    factory.ncp("NCP002")
    register_team(db, "NCP001", event.id, "Sprinters", [], [])
    register_team(db, "NCP002", event.id, "Hurdlers", [], [])
    confirm_participant(db, "NCP002", event.id)
    admit_walk_in_team(db, factory.identity("Kiran", "Das"), "Late Comers", event.id, [])

    [listing] = list_event_confirmations(db, event.id)

    bucket = listing["buckets"]["open"]
    assert [row["participant"] for row in bucket["pending"]] == ["Sprinters"]
    assert [row["participant"] for row in bucket["confirmed"]] == ["Hurdlers"]
    assert [row["participant"] for row in bucket["walk_ins"]] == ["Late Comers"]
    assert bucket["slots"] == 1


def test_listing_all_events_and_workbook_export(db, factory):
    quiz = factory.event(name="Quiz", slots=2)
    factory.event(name="Mr. and Ms. Fest", slots={"male": 1, "female": 1})
    factory.ncp("NCP001")
    register_solo(db, "NCP001", quiz.id)
    confirm_participant(db, "NCP001", quiz.id)

    listings = list_event_confirmations(db)
    assert [listing["event_name"] for listing in listings] == ["Quiz", "Mr. and Ms. Fest"]
    assert set(listings[1]["buckets"]) == {"male", "female"}

    workbook = load_workbook(build_confirmation_workbook(listings))
    rows = list(workbook.active.iter_rows(values_only=True))
    assert rows[0][:5] == ("Event ID", "Event", "Format", "Bucket", "State")
    assert rows[1][1:7] == ("Quiz", "SOLO", "open", "confirmed", "NCP001", "NCP001")
    assert len(rows) == 2
