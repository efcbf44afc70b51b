"""Tests for optimistic concurrency on travel request updates."""

from __future__ import annotations

import threading

import pytest

from travel_approval_portal import (
    ConcurrentModification,
    DecisionOutcome,
    InvalidTransition,
    NotCurrentApprover,
    RequestStatus,
    WorkflowEngine,
)
from travel_approval_portal.models import ChatMessage

ALICE = "alice@company.example"
BOB = "bob@company.example"
POC_EMAIL = "poc@company.example"


def test_stale_save_is_refused(engine, trip_factory) -> None:
    request = engine.submit(ALICE, trip_factory())
    first = engine.repository.require(request.request_id)
    second = engine.repository.require(request.request_id)

    first.current_approval_index = 1
    first.approval_chain[0].approved = True
    engine.repository.save(first, expected_version=first.version)

    second.status = "Rejected"
    with pytest.raises(ConcurrentModification) as excinfo:
        engine.repository.save(second, expected_version=second.version)

    assert excinfo.value.actual == first.version + 1
    assert engine.repository.require(request.request_id).current_approval_index == 1


def test_invalid_update_never_becomes_visible(engine, trip_factory) -> None:
    request = engine.submit(ALICE, trip_factory())
    broken = engine.repository.require(request.request_id)
    broken.current_approval_index = 1

    with pytest.raises(ValueError):
        engine.repository.save(broken, expected_version=broken.version)

    stored = engine.repository.require(request.request_id)
    assert stored.current_approval_index == 0
    assert stored.version == request.version


def test_chat_appends_do_not_conflict_with_decisions(engine, trip_factory) -> None:
    request = engine.submit(ALICE, trip_factory())
    loaded = engine.repository.require(request.request_id)

    engine.repository.append_message(
        request.request_id,
        ChatMessage(sender=ALICE, sender_name="Alice", message="Window seat please"),
    )
    loaded.current_approval_index = 1
    loaded.approval_chain[0].approved = True
    saved = engine.repository.save(loaded, expected_version=loaded.version)

    assert [m.message for m in saved.chat_messages][-1] == "Window seat please"


class _RacingRepositoryEngine(WorkflowEngine):
    """Lets a competing decision commit between load and save of the first."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.raced = False

    def _commit(self, request_id, apply):
        def racing_apply(request):
            if not self.raced:
                self.raced = True
                WorkflowEngine.decide(self, request_id, BOB, DecisionOutcome.APPROVED)
            return apply(request)

        return super()._commit(request_id, racing_apply)


def test_losing_decision_is_rechecked(org_directory, policy, trip_factory) -> None:
    engine = _RacingRepositoryEngine(org_directory, policy=policy)
    request = engine.submit(ALICE, trip_factory())

    with pytest.raises(NotCurrentApprover):
        engine.decide(request.request_id, BOB, DecisionOutcome.APPROVED)

    stored = engine.repository.require(request.request_id)
    assert stored.current_approval_index == 1
    assert stored.approval_chain[0].approved
    assert stored.approval_chain[1].approved is False


def test_parallel_decisions_advance_once(engine, trip_factory) -> None:
    request = engine.submit(ALICE, trip_factory())
    barrier = threading.Barrier(4)
    outcomes: list[object] = []
    lock = threading.Lock()

    def worker() -> None:
        barrier.wait()
        try:
            engine.decide(request.request_id, BOB, DecisionOutcome.APPROVED)
            result: object = "ok"
        except (NotCurrentApprover, InvalidTransition) as exc:
            result = exc
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert outcomes.count("ok") == 1
    stored = engine.repository.require(request.request_id)
    assert stored.current_approval_index == 1


class _BusyPocEngine(WorkflowEngine):
    """Commits a POC logistics edit before each of the first few decision saves."""

    def __init__(self, *args, edits: int, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.edits_left = edits
        self.editing = False

    def _commit(self, request_id, apply):
        def racing_apply(request):
            if self.edits_left and not self.editing:
                self.edits_left -= 1
                self.editing = True
                try:
                    WorkflowEngine.edit_logistics(
                        self,
                        request_id,
                        POC_EMAIL,
                        {"special_instructions": f"revision {self.edits_left}"},
                    )
                finally:
                    self.editing = False
            return apply(request)

        return super()._commit(request_id, racing_apply)


def test_repeated_lost_races_still_commit(org_directory, policy, trip_factory) -> None:
    engine = _BusyPocEngine(org_directory, policy=policy, edits=5)
    request = engine.submit("erin@company.example", trip_factory())

    approved = engine.decide(request.request_id, POC_EMAIL, DecisionOutcome.APPROVED)

    assert approved.status == RequestStatus.APPROVED
    assert approved.trip.special_instructions == "revision 0"
    assert approved.version == 6
