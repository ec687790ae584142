import pytest

from bet_service import list_bets, list_participant_bets, place_bet, serialize_bet
from errors import Forbidden, InvalidArgument, NotFound, NotRegistered
from event_catalog import set_event_status
from models import Bet, EventStatus, VerificationStatus
from registration_service import register_solo, register_team
from schemas import TeamMemberEntry


def test_registered_cc_can_bet_on_a_solo_event(db, factory):
    event = factory.event(slots=2)
    factory.cc("CC001")
    register_solo(db, "CC001", event.id, is_dummy=True)

    bet = place_bet(db, "cc001", event.id, 100, category=" open ")

    assert serialize_bet(bet) == {
        "id": bet.id,
        "participant_id": "CC001",
        "event_id": event.id,
        "event_name": "Quiz",
        "event_type": "POPULAR",
        "format": "SOLO",
        "amount": 100,
        "category": "open",
    }


def test_team_events_need_an_owned_team(db, factory):
    event = factory.event(name="Relay", event_format="TEAM")
    factory.cc("CC001")

    with pytest.raises(NotRegistered):
        place_bet(db, "CC001", event.id, 50)

    register_team(db, "CC001", event.id, "Torch", [TeamMemberEntry(is_dummy=True)], [])
    bet = place_bet(db, "CC001", event.id, 50)
    assert bet.category is None
    assert serialize_bet(bet)["format"] == "TEAM"


def test_only_cc_accounts_in_good_standing_can_bet(db, factory):
    event = factory.event()
    factory.ncp("NCP001")
    register_solo(db, "NCP001", event.id)
    with pytest.raises(Forbidden):
        place_bet(db, "NCP001", event.id, 50)

    rejected = factory.cc("CC002")
    rejected.verified = VerificationStatus.REJECTED
    db.commit()
    with pytest.raises(Forbidden):
        place_bet(db, "CC002", event.id, 50)

    deleted = factory.cc("CC003")
    deleted.deleted = True
    db.commit()
    with pytest.raises(NotFound):
        place_bet(db, "CC003", event.id, 50)

    assert db.query(Bet).count() == 0


def test_betting_closes_once_the_event_starts(db, factory):
    event = factory.event()
    factory.cc("CC001")
    register_solo(db, "CC001", event.id, is_dummy=True)
    set_event_status(db, event.id, EventStatus.ONGOING)

    with pytest.raises(InvalidArgument):
        place_bet(db, "CC001", event.id, 50)


def test_listing_all_bets_and_a_participants_bets(db, factory):
    quiz = factory.event()
    debate = factory.event(name="Debate")
    factory.cc("CC001")
    factory.cc("CC002")
    factory.ncp("NCP001")
    for cc_id in ("CC001", "CC002"):
        register_solo(db, cc_id, quiz.id, is_dummy=True)
    register_solo(db, "CC001", debate.id, is_dummy=True)
    place_bet(db, "CC001", quiz.id, 50)
    place_bet(db, "CC002", quiz.id, 70)
    place_bet(db, "CC001", debate.id, 90)

    assert [bet.amount for bet in list_bets(db)] == [50, 70, 90]
    assert [bet.amount for bet in list_participant_bets(db, "CC001")] == [50, 90]
    assert list_participant_bets(db, "NCP001") == []
