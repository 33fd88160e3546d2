from decimal import Decimal

import pytest

from needflow.core.exceptions import WorkflowConfigurationError
from needflow.models.approval_chain import ApprovalChainRule
from needflow.models.enums import RequestStatus, StepRole, StepStatus
from needflow.models.user import User
from needflow.services.step_sequencer import StepSequencer
from needflow.services.workflow_engine import WorkflowEngine


def _create(engine, requester, department="Finance", amount="0", title="Laptops"):
    return engine.create_request(
        requester,
        title=title,
        description="Two laptops for new hires",
        department=department,
        montant_demande=Decimal(amount),
    )


def test_initial_chain_has_three_ordered_steps(memory_store, people, clock):
    engine = WorkflowEngine(memory_store, clock=clock)
    req = _create(engine, people["requester"])

    steps = memory_store.get_steps(req.id)
    assert [s.order for s in steps] == [1, 2, 3]
    assert [s.role for s in steps] == [StepRole.INITIATOR.value, StepRole.VALIDATOR.value, StepRole.APPROVER.value]
    assert [s.user_id for s in steps] == [people["requester"].id, people["validator"].id, people["approver"].id]

    initiator = steps[0]
    assert initiator.status == StepStatus.APPROVED
    assert initiator.comments == "Request submitted"
    assert initiator.action_date == clock.now
    assert all(s.status == StepStatus.PENDING for s in steps[1:])

    assert req.status == RequestStatus.PENDING_APPROVAL
    assert req.current_approver == people["validator"].id


def test_wildcard_rule_is_used_when_department_has_none(memory_store, people, clock):
    memory_store.add_rule(
        ApprovalChainRule(department="*", validator_id=people["approver"].id, approver_id=people["dg"].id)
    )
    engine = WorkflowEngine(memory_store, clock=clock)
    req = _create(engine, people["requester"], department="Logistics")

    steps = memory_store.get_steps(req.id)
    assert steps[1].user_id == people["approver"].id
    assert steps[2].user_id == people["dg"].id


def test_missing_chain_rejects_creation_and_persists_nothing(memory_store, people, clock):
    engine = WorkflowEngine(memory_store, clock=clock)

    with pytest.raises(WorkflowConfigurationError):
        _create(engine, people["requester"], department="Logistics")

    assert memory_store.requests == {}
    assert memory_store.steps == {}
    assert memory_store.sequences == {}
    assert memory_store.audit == []


def test_inactive_validator_is_a_configuration_error(memory_store, people, clock):
    people["validator"].is_active = False
    engine = WorkflowEngine(memory_store, clock=clock)

    with pytest.raises(WorkflowConfigurationError) as exc:
        _create(engine, people["requester"])
    assert exc.value.details["role"] == "validator"
    assert memory_store.requests == {}


def test_resolve_dg_requires_a_bound_user(memory_store, people):
    sequencer = StepSequencer(memory_store)
    assert sequencer.resolve_dg("Finance") == people["dg"].id

    memory_store.add_rule(
        ApprovalChainRule(department="Legal", validator_id=people["validator"].id, approver_id=people["approver"].id)
    )
    with pytest.raises(WorkflowConfigurationError):
        sequencer.resolve_dg("Legal")


def test_ticket_ids_increment_per_year(memory_store, people, clock):
    engine = WorkflowEngine(memory_store, clock=clock)

    first = _create(engine, people["requester"], title="a")
    second = _create(engine, people["requester"], title="b")
    assert first.ticket_id == "REQ-2026-0001"
    assert second.ticket_id == "REQ-2026-0002"

    clock.advance(days=365)
    third = _create(engine, people["requester"], title="c")
    assert third.ticket_id == "REQ-2027-0001"


def test_failed_creation_does_not_consume_a_ticket_number(memory_store, people, clock):
    engine = WorkflowEngine(memory_store, clock=clock)
    _create(engine, people["requester"], title="a")

    with pytest.raises(WorkflowConfigurationError):
        _create(engine, people["requester"], department="Unknown", title="b")

    assert _create(engine, people["requester"], title="c").ticket_id == "REQ-2026-0002"


def test_requester_can_be_their_own_validator(memory_store, people, clock):
    solo = memory_store.add_user(User(username="solo", full_name="Solo", is_active=True))
    memory_store.add_rule(
        ApprovalChainRule(department="Solo", validator_id=solo.id, approver_id=people["approver"].id)
    )
    engine = WorkflowEngine(memory_store, clock=clock)
    req = _create(engine, solo, department="Solo")

    assert req.current_approver == solo.id
    engine.apply_action(req.id, solo.id, "approve")
    assert memory_store.get_request(req.id).current_approver == people["approver"].id
