import pytest

from bet_service import place_bet
from errors import Forbidden
from event_catalog import delete_event
from models import VerificationStatus
from participant_details import describe_participant
from registration_service import register_solo, register_team
from schemas import TeamMemberEntry
from slot_allocator import confirm_participant


def test_cc_details_show_entries_points_and_bets(db, factory):
    quiz = factory.event(slots=3)
    relay = factory.event(name="Relay", event_format="TEAM")
    factory.cc("CC001")
    factory.ncp("NCP002")
    dummy = register_solo(db, "CC001", quiz.id, is_dummy=True)
    named = register_solo(db, "CC001", quiz.id, identity=factory.identity("Asha", "Rao"))
    register_team(
        db,
        "CC001",
        relay.id,
        "Torch",
        [TeamMemberEntry(ncp_id="NCP002"), TeamMemberEntry(is_dummy=True)],
        [TeamMemberEntry(identity=factory.identity("Ravi", "Kumar"))],
    )
    confirm_participant(db, "CC001", quiz.id, registration_id=named.id)
    place_bet(db, "CC001", quiz.id, 60)

    details = describe_participant(db, "cc001")

    assert details["kind"] == "CC"
    assert details["participant_id"] == "CC001"
    assert details["points"] == 10
    assert [(row["registration_id"], row["participant"], row["confirmed"]) for row in details["registered_solos"]] == [
        (dummy.id, "dummy", False),
        (named.id, "Asha Rao", True),
    ]
    assert [row["verified"] for row in details["registered_solos"]] == [False, False]
    [team] = details["registered_teams"]
    assert team["team_name"] == "Torch"
    assert team["team_members"] == ["NCP002", "dummy"]
    assert team["npa_members"] == ["Ravi Kumar"]
    assert team["verified"] is False
    assert [(bet["event_name"], bet["amount"]) for bet in details["bets"]] == [("Quiz", 60)]


def test_ncp_details_include_teams_they_play_in(db, factory):
    quiz = factory.event()
    relay = factory.event(name="Relay", event_format="TEAM")
    factory.ncp("NCP001")
    factory.ncp("NCP002")
    register_solo(db, "NCP001", quiz.id)
    register_team(db, "NCP002", relay.id, "Sprinters", [TeamMemberEntry(ncp_id="NCP001")], [])

    details = describe_participant(db, "NCP001")

    assert details["kind"] == "NCP"
    assert details["first_name"] == "Direct"
    assert [row["participant"] for row in details["registered_solos"]] == ["NCP001"]
    assert details["registered_solos"][0]["verified"] is True
    [team] = details["registered_teams"]
    assert team["owner_id"] == "NCP002"
    assert team["verified"] is True
    assert details["bets"] == []


def test_deleted_events_are_left_out(db, factory):
    quiz = factory.event()
    factory.ncp("NCP001")
    register_solo(db, "NCP001", quiz.id)
    delete_event(db, quiz.id)

    assert describe_participant(db, "NCP001")["registered_solos"] == []


def test_rejected_participant_is_refused_their_own_view(db, factory):
    factory.ncp("NCP001", verified=VerificationStatus.REJECTED)

    with pytest.raises(Forbidden):
        describe_participant(db, "NCP001", refuse_rejected=True)
    assert describe_participant(db, "NCP001")["verified"] == "REJECTED"
