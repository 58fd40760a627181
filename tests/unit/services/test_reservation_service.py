"""
Unit tests for ReservationService.

Exercises the reservation protocol on a real (in-memory) store: the
precondition checks, the atomic slot/booking write, and post-commit
notification.
"""

from unittest.mock import Mock, patch

import pytest

from conftest import NOW, at, hour_range
from educonnect.core.enums import BookingStatus, NotificationKind, ParticipantRole
from educonnect.core.exceptions import (
    InvalidTimeRangeException,
    ServiceException,
    SlotAlreadyBookedException,
    SlotChangedException,
    SlotNotFoundException,
    ValidationException,
)
from educonnect.core.time_range import TimeRange
from educonnect.repositories.booking_repository import BookingRepository
from educonnect.repositories.slot_repository import SlotRepository
from educonnect.services.availability_service import AvailabilityService
from educonnect.services.reservation_service import ReservationService


@pytest.fixture
def availability(db, clock):
    return AvailabilityService(db, clock=clock)


@pytest.fixture
def service(db, dispatcher, clock):
    return ReservationService(db, dispatcher=dispatcher, clock=clock)


@pytest.fixture
def slot_id(availability):
    return availability.insert_batch("teacher-1", [hour_range(9)])[0]


class TestSuccessfulReservation:
    def test_booking_copies_slot_and_snapshots(self, service, availability, slot_id, requester, provider):
        """The booking is self-contained: range and participant data are copied."""
        booking = service.reserve(slot_id, hour_range(9), requester, provider)

        assert booking.status == BookingStatus.CONFIRMED.value
        assert booking.slot_id == slot_id
        assert booking.range == hour_range(9)
        assert booking.requester_id == requester.participant_id
        assert booking.requester_name == requester.name
        assert booking.requester_contact == requester.contact
        assert booking.provider_id == provider.participant_id
        assert booking.provider_name == provider.name
        assert booking.created_at == NOW
        assert booking.meeting_reference.endswith(f"/{booking.id}")

    def test_slot_is_held_by_requester(self, service, availability, slot_id, requester, provider):
        service.reserve(slot_id, hour_range(9), requester, provider)

        slot = availability.get_slot(slot_id)
        assert slot.is_held
        assert slot.holder_id == requester.participant_id
        assert slot.holder_name == requester.name

    def test_accepts_start_end_pair(self, service, slot_id, requester, provider):
        booking = service.reserve(slot_id, (at(9), at(10)), requester, provider)

        assert booking.range == hour_range(9)

    def test_both_parties_notified_after_commit(self, service, sink, slot_id, requester, provider):
        booking = service.reserve(slot_id, hour_range(9), requester, provider)

        assert sink.kinds() == [NotificationKind.BOOKED.value] * 2
        assert sorted(sink.recipients()) == sorted(
            [requester.participant_id, provider.participant_id]
        )
        assert all(event.booking["id"] == booking.id for event in sink.events)

    def test_later_snapshot_changes_do_not_leak(self, db, service, slot_id, requester, provider):
        """Snapshots are values; the stored booking keeps the original data."""
        booking = service.reserve(slot_id, hour_range(9), requester, provider)
        renamed = requester.model_copy(update={"name": "Rear Admiral Hopper"})

        stored = BookingRepository(db).get_by_id(booking.id, refresh=True)

        assert renamed.name != requester.name
        assert stored.requester_name == "Grace Hopper"


class TestRejectedReservations:
    def test_missing_slot(self, service, requester, provider):
        with pytest.raises(SlotNotFoundException):
            service.reserve("01HZZZZZZZZZZZZZZZZZZZZZZZ", hour_range(9), requester, provider)

    def test_held_slot(self, service, slot_id, requester, other_requester, provider):
        """The second requester is told the time is gone."""
        service.reserve(slot_id, hour_range(9), requester, provider)

        with pytest.raises(SlotAlreadyBookedException) as exc_info:
            service.reserve(slot_id, hour_range(9), other_requester, provider)

        assert exc_info.value.message == "This time is no longer available, please pick another"

    def test_stale_range_rejected(self, db, service, availability, slot_id, requester, provider):
        """A caller holding an outdated range is never silently given the new one."""
        stale = TimeRange(at(9), at(9, 30))

        with pytest.raises(SlotChangedException) as exc_info:
            service.reserve(slot_id, stale, requester, provider)

        assert exc_info.value.details["actual"] == hour_range(9).to_dict()
        assert availability.get_slot(slot_id).is_free
        assert BookingRepository(db).count() == 0

    def test_provider_must_own_slot(self, db, service, slot_id, requester, other_provider):
        with pytest.raises(ValidationException) as exc_info:
            service.reserve(slot_id, hour_range(9), requester, other_provider)

        assert exc_info.value.code == "PROVIDER_MISMATCH"
        assert BookingRepository(db).count() == 0

    def test_rejection_ends_the_transaction(self, db, service, slot_id, requester, provider):
        """A failed precondition leaves no transaction open on the session."""
        with pytest.raises(SlotChangedException):
            service.reserve(slot_id, TimeRange(at(9), at(9, 30)), requester, provider)

        assert not db.in_transaction()

    @pytest.mark.parametrize("bad_slot_id", ["", "   ", None])
    def test_blank_slot_id(self, service, requester, provider, bad_slot_id):
        with pytest.raises(ValidationException):
            service.reserve(bad_slot_id, hour_range(9), requester, provider)

    def test_missing_requester(self, service, slot_id, provider):
        with pytest.raises(ValidationException):
            service.reserve(slot_id, hour_range(9), None, provider)

    def test_inverted_expected_range(self, service, slot_id, requester, provider):
        with pytest.raises(InvalidTimeRangeException):
            service.reserve(slot_id, (at(10), at(9)), requester, provider)

    def test_no_notifications_on_failure(self, service, sink, slot_id, requester, other_provider):
        with pytest.raises(ValidationException):
            service.reserve(slot_id, hour_range(9), requester, other_provider)

        assert sink.events == []


class TestAtomicity:
    def test_booking_insert_failure_leaves_slot_free(
        self, db, service, availability, slot_id, requester, provider, sink
    ):
        """If the booking cannot be written, the slot hold is rolled back too."""
        from educonnect.core.exceptions import RepositoryException

        with patch.object(
            service.booking_repository, "insert", side_effect=RepositoryException("disk full")
        ):
            with pytest.raises(ServiceException):
                service.reserve(slot_id, hour_range(9), requester, provider)

        slot = availability.get_slot(slot_id)
        assert slot.is_free
        assert slot.version == 1
        assert BookingRepository(db).count() == 0
        assert sink.events == []

    def test_lost_race_inside_transaction_maps_to_already_booked(
        self, db, service, slot_id, requester, other_requester, provider
    ):
        """A concurrent winner between read and write yields SlotAlreadyBooked."""
        real_hold = service.slot_repository.try_transition_to_held
        winner_repo = SlotRepository(db)

        def winner_goes_first(*args, **kwargs):
            winner_repo.try_transition_to_held(slot_id, hour_range(9), other_requester, NOW)
            return real_hold(*args, **kwargs)

        with patch.object(
            service.slot_repository, "try_transition_to_held", side_effect=winner_goes_first
        ):
            with pytest.raises(SlotAlreadyBookedException):
                service.reserve(slot_id, hour_range(9), requester, provider)

        assert BookingRepository(db).count() == 0

    def test_dispatcher_failure_does_not_undo_booking(self, db, slot_id, requester, provider, clock):
        """A broken dispatcher is logged; the committed booking stands."""
        broken = Mock()
        broken.dispatch.side_effect = RuntimeError("smtp down")
        service = ReservationService(db, dispatcher=broken, clock=clock)

        booking = service.reserve(slot_id, hour_range(9), requester, provider)

        stored = BookingRepository(db).get_by_id(booking.id, refresh=True)
        assert stored.status == BookingStatus.CONFIRMED.value
        broken.dispatch.assert_called_once()


def test_booking_visible_to_both_participants(db, service, slot_id, requester, provider):
    """Provider and requester views both contain the new booking."""
    booking = service.reserve(slot_id, hour_range(9), requester, provider)
    repo = BookingRepository(db)

    assert [b.id for b in repo.list_by_participant("student-1", ParticipantRole.REQUESTER)] == [
        booking.id
    ]
    assert [b.id for b in repo.list_by_participant("teacher-1", ParticipantRole.PROVIDER)] == [
        booking.id
    ]
