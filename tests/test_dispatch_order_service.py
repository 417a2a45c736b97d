from decimal import Decimal

import pytest
from pydantic import ValidationError

from dispatchdesk.exceptions import (
    DispatchValidationError, InvalidTransition, InvariantViolation, PermissionDenied,
)
from dispatchdesk.schemas.dispatch_order import ItemEdit, NewLineItem, OrderDraft, ReturnLine, ReturnRequest
from dispatchdesk.services.dispatch_order_service import (
    DispatchOrderService, assemble_final_items, authorize, draft_to_patch, next_status, validate_for_confirm,
)
from dispatchdesk.services.ledger_balance import SUPPLIER, compute_balance
from tests.factories import line_item, make_order, ready_draft, return_record
from tests.fakes import FakeLedgerStore, FakeOrderStore


def _service(order, ledger=None):
    return DispatchOrderService(FakeOrderStore(order), ledger or FakeLedgerStore())


def _priced_order(**overrides):
    values = dict(
        items=[line_item(quantity=100, cost_price=10)],
        exchange_rate=Decimal("2"),
        percentage=Decimal("10"),
        total_discount=Decimal("50"),
    )
    values.update(overrides)
    return make_order(**values)


# ---------------------------------------------------------------------------
# Confirm gate
# ---------------------------------------------------------------------------

def test_ready_order_passes_gate():
    order = make_order()
    result = validate_for_confirm(order, ready_draft(order))
    assert result.is_valid
    assert result.errors == []


def test_zero_boxes_fails_gate_even_when_everything_else_is_valid():
    order = make_order(total_boxes=0, is_total_boxes_confirmed=True)
    result = validate_for_confirm(order, ready_draft(order))
    assert not result.is_valid
    assert result.errors == ["Total boxes must be greater than 0"]


def test_unverified_item_fails_gate():
    first = line_item(quantity=5)
    second = line_item(quantity=5, position=1)
    order = make_order(items=[first, second])
    result = validate_for_confirm(order, OrderDraft(verified_item_ids=[first.id]))
    assert result.errors == ["Items not verified: #2"]


def test_missing_draft_means_nothing_is_verified():
    result = validate_for_confirm(make_order())
    assert "Items not verified: #1" in result.errors


def test_all_violations_are_reported_together():
    order = make_order(
        logistics_company_id=None,
        dispatch_date=None,
        exchange_rate=Decimal("0"),
        is_total_boxes_confirmed=False,
    )
    result = validate_for_confirm(order, ready_draft(order))
    assert result.errors == [
        "Logistics company is required",
        "Dispatch date is required",
        "Exchange rate must be greater than 0",
        "Total boxes must be confirmed before order confirmation",
    ]


def test_changing_box_count_resets_confirmation():
    order = make_order(total_boxes=3, is_total_boxes_confirmed=True)
    result = validate_for_confirm(order, ready_draft(order, total_boxes=5))
    assert result.errors == ["Total boxes must be confirmed before order confirmation"]

    reconfirmed = ready_draft(order, total_boxes=5, total_boxes_confirmed=True)
    assert validate_for_confirm(order, reconfirmed).is_valid


def test_invalid_quantities_fail_gate():
    item = line_item(quantity=5)
    order = make_order(items=[item])
    draft = ready_draft(
        order,
        item_edits={item.id: ItemEdit(quantity=0)},
        new_items=[NewLineItem(product_name="Extra", cost_price=Decimal("1"))],
    )
    result = validate_for_confirm(order, draft)
    assert result.errors == ["Items with invalid quantity: #1", "New items with invalid quantity: #1"]


def test_removing_every_item_fails_gate():
    item = line_item()
    order = make_order(items=[item])
    result = validate_for_confirm(order, ready_draft(order, removed_item_ids=[item.id]))
    assert result.errors == ["At least one item is required"]


def test_new_items_count_as_active():
    item = line_item()
    order = make_order(items=[item])
    draft = ready_draft(
        order,
        removed_item_ids=[item.id],
        new_items=[NewLineItem(product_name="Replacement", quantity=3, cost_price=Decimal("2"))],
    )
    assert validate_for_confirm(order, draft).is_valid


# ---------------------------------------------------------------------------
# Transitions and roles
# ---------------------------------------------------------------------------

def test_next_status():
    assert next_status("pending", "submit_approval") == "pending-approval"
    assert next_status("pending-approval", "submit_approval") == "pending-approval"
    assert next_status("pending-approval", "revert_to_pending") == "pending"
    assert next_status("pending-approval", "confirm") == "confirmed"
    assert next_status("pending", "cancel") == "cancelled"


@pytest.mark.parametrize("status,action", [
    ("confirmed", "confirm"),
    ("confirmed", "save"),
    ("confirmed", "cancel"),
    ("pending", "revert_to_pending"),
    ("cancelled", "submit_approval"),
    ("confirmed", "delete"),
])
def test_illegal_transitions(status, action):
    with pytest.raises(InvalidTransition):
        next_status(status, action)


def test_unknown_status_is_rejected_by_the_snapshot():
    with pytest.raises(ValidationError):
        make_order(status="shipped")


def test_roles():
    authorize("submit_approval", "admin")
    authorize("confirm", "super-admin")
    with pytest.raises(PermissionDenied):
        authorize("confirm", "admin")
    with pytest.raises(PermissionDenied):
        authorize("submit_approval", "super-admin")
    with pytest.raises(PermissionDenied):
        authorize("return", None)


# ---------------------------------------------------------------------------
# Final item assembly
# ---------------------------------------------------------------------------

def test_assemble_final_items():
    first = line_item(quantity=10)
    second = line_item(quantity=4, position=1)
    order = make_order(items=[first, second])
    draft = OrderDraft(
        item_edits={first.id: ItemEdit(quantity=8, box_numbers="4, x, 5")},
        removed_item_ids=[second.id],
        new_items=[NewLineItem(product_name="Scarf", quantity=3, box_numbers="9")],
    )
    final = assemble_final_items(order, draft)
    assert [item.product_name for item in final] == ["Product 1", "Scarf"]
    assert final[0].id == first.id
    assert final[0].quantity == 8
    assert final[0].original_position == 0
    assert [box.box_number for box in final[0].boxes] == [4, 5]
    assert final[1].original_position is None
    assert final[1].position == 1
    assert [box.box_number for box in final[1].boxes] == [9]


def test_stored_order_is_not_mutated_by_assembly():
    item = line_item(quantity=10)
    order = make_order(items=[item])
    assemble_final_items(order, OrderDraft(item_edits={item.id: ItemEdit(quantity=2)}))
    assert order.items[0].quantity == 10


def test_edit_below_returned_quantity_is_refused():
    item = line_item(quantity=10)
    order = make_order(items=[item], returned_items=[return_record(item, 3)])
    with pytest.raises(InvariantViolation):
        assemble_final_items(order, OrderDraft(item_edits={item.id: ItemEdit(quantity=2)}))


def test_item_with_returns_cannot_be_removed():
    item = line_item(quantity=10)
    order = make_order(items=[item], returned_items=[return_record(item, 1)])
    with pytest.raises(InvariantViolation):
        assemble_final_items(order, OrderDraft(removed_item_ids=[item.id]))


def test_patch_keeps_pre_return_discount_when_returns_exist():
    item = line_item(quantity=10)
    order = make_order(items=[item], total_discount=Decimal("50"), returned_items=[return_record(item, 1)])
    draft = OrderDraft(discount=Decimal("5"))
    patch = draft_to_patch(order, draft, assemble_final_items(order, draft))
    assert patch["total_discount"] == Decimal("50")
    assert patch["discount_basis"] == Decimal("100")

    fresh = make_order(total_discount=Decimal("50"))
    assert draft_to_patch(fresh, draft, assemble_final_items(fresh, draft))["total_discount"] == Decimal("5")


# ---------------------------------------------------------------------------
# Workflow
# ---------------------------------------------------------------------------

def test_confirm_locks_snapshot_and_posts_to_ledger():
    order = _priced_order()
    ledger = FakeLedgerStore()
    service = _service(order, ledger)

    confirmed = service.confirm(
        order.id,
        ready_draft(order, cash_payment=Decimal("30"), bank_payment=Decimal("20")),
        "super-admin",
    )

    assert confirmed.status == "confirmed"
    assert confirmed.confirmed_quantities[0].quantity == 100
    assert confirmed.payment_details.remaining_balance == Decimal("900")
    assert confirmed.payment_details.outstanding_balance == Decimal("0")

    assert [(e.transaction_type, e.payment_method) for e in ledger.entries] == [
        ("purchase", None), ("payment", "cash"), ("payment", "bank"),
    ]
    assert ledger.entries[0].debit == Decimal("475")
    assert ledger.entries[1].credit == Decimal("15")
    assert ledger.entries[2].credit == Decimal("10")
    assert compute_balance(ledger.entries, SUPPLIER) == Decimal("450")

    view = service.view(order.id)
    assert view.totals.payments == Decimal("50")
    assert view.totals.remaining_balance == Decimal("900")


def test_confirm_refused_for_admin():
    order = _priced_order()
    service = _service(order)
    with pytest.raises(PermissionDenied):
        service.confirm(order.id, ready_draft(order), "admin")
    assert service.orders.calls == []


def test_confirm_refused_when_gate_fails():
    order = _priced_order(total_boxes=0)
    ledger = FakeLedgerStore()
    service = _service(order, ledger)
    with pytest.raises(DispatchValidationError) as exc_info:
        service.confirm(order.id, ready_draft(order), "super-admin")
    assert exc_info.value.errors == ["Total boxes must be greater than 0"]
    assert service.orders.calls == []
    assert ledger.entries == []


def test_confirmed_order_cannot_be_confirmed_again():
    order = _priced_order(status="confirmed")
    with pytest.raises(InvalidTransition):
        _service(order).confirm(order.id, ready_draft(order), "super-admin")


def test_return_after_confirmation_credits_supplier():
    order = _priced_order()
    ledger = FakeLedgerStore()
    service = _service(order, ledger)
    service.confirm(order.id, ready_draft(order), "super-admin")

    item_id = order.items[0].id
    updated = service.return_items(
        order.id, ReturnRequest(lines=[ReturnLine(item_id=item_id, quantity=20, reason="damaged")]), "admin",
    )

    assert updated.confirmed_quantities[0].quantity == 80
    view = service.view(order.id)
    assert view.items[0].confirmed_qty == 80
    assert view.totals.discount == Decimal("40")
    assert view.totals.total_amount == Decimal("380")

    credit = ledger.entries[-1]
    assert credit.transaction_type == "return"
    assert credit.credit == Decimal("95")
    assert compute_balance(ledger.entries, SUPPLIER) == Decimal("355")


def test_rejected_return_writes_nothing():
    order = make_order(items=[line_item(quantity=10)])
    service = _service(order)
    request = ReturnRequest(lines=[ReturnLine(item_id=order.items[0].id, quantity=15)])
    with pytest.raises(InvariantViolation):
        service.return_items(order.id, request, "admin")
    assert service.orders.calls == []
    assert service.get(order.id).returned_items == []


def test_return_before_confirmation_has_no_ledger_effect():
    order = make_order(items=[line_item(quantity=10)])
    ledger = FakeLedgerStore()
    service = _service(order, ledger)
    request = ReturnRequest(lines=[ReturnLine(item_id=order.items[0].id, quantity=4)])
    updated = service.return_items(order.id, request, "admin")
    assert len(updated.returned_items) == 1
    assert ledger.entries == []


def _returned_before_confirm():
    order = make_order(
        items=[line_item(quantity=10, cost_price=10)],
        exchange_rate=Decimal("1"),
        percentage=Decimal("0"),
        total_discount=Decimal("10"),
    )
    ledger = FakeLedgerStore()
    service = _service(order, ledger)
    request = ReturnRequest(lines=[ReturnLine(item_id=order.items[0].id, quantity=5)])
    returned = service.return_items(order.id, request, "admin")
    return service, ledger, returned


def test_confirm_with_added_item_keeps_the_discount_rate():
    service, ledger, order = _returned_before_confirm()
    assert order.discount_basis == Decimal("100")
    draft = ready_draft(order, new_items=[NewLineItem(product_name="Added", quantity=10, cost_price=Decimal("10"))])

    before = service.view(order.id, draft).totals
    assert before.discount == Decimal("15")
    assert before.total_amount == Decimal("135")

    confirmed = service.confirm(order.id, draft, "super-admin")
    after = service.view(order.id).totals
    assert (after.discount, after.total_amount) == (before.discount, before.total_amount)
    assert compute_balance(ledger.entries, SUPPLIER) == Decimal("135")

    lines = [
        ReturnLine(item_id=cq.item_id, quantity=cq.quantity)
        for cq in confirmed.confirmed_quantities if cq.quantity > 0
    ]
    service.return_items(order.id, ReturnRequest(lines=lines), "admin")
    assert service.view(order.id).totals.total_amount == Decimal("0")
    assert compute_balance(ledger.entries, SUPPLIER) == Decimal("0")


def test_confirm_with_edited_quantity_keeps_the_discount_rate():
    service, ledger, order = _returned_before_confirm()
    item_id = order.items[0].id
    draft = ready_draft(order, item_edits={item_id: ItemEdit(quantity=12)})

    before = service.view(order.id, draft).totals
    assert before.discount == Decimal("7")
    assert before.total_amount == Decimal("63")

    confirmed = service.confirm(order.id, draft, "super-admin")
    assert confirmed.discount_basis == Decimal("100")
    after = service.view(order.id).totals
    assert (after.discount, after.total_amount) == (before.discount, before.total_amount)

    service.return_items(order.id, ReturnRequest(lines=[ReturnLine(item_id=item_id, quantity=7)]), "admin")
    assert compute_balance(ledger.entries, SUPPLIER) == Decimal("0")


def test_submit_revert_and_resubmit():
    order = make_order()
    service = _service(order)

    submitted = service.submit_approval(order.id, ready_draft(order, cash_payment=Decimal("4")), "admin")
    assert submitted.status == "pending-approval"
    assert submitted.payment_details.cash_payment == Decimal("4")

    resubmitted = service.submit_approval(order.id, ready_draft(order), "admin")
    assert resubmitted.status == "pending-approval"

    with pytest.raises(PermissionDenied):
        service.revert_to_pending(order.id, "admin")
    assert service.revert_to_pending(order.id, "super-admin").status == "pending"


def test_submit_runs_the_confirm_gate():
    order = make_order()
    with pytest.raises(DispatchValidationError) as exc_info:
        _service(order).submit_approval(order.id, OrderDraft(), "admin")
    assert exc_info.value.errors == ["Items not verified: #1"]


def test_save_draft_applies_edits_without_gate():
    item = line_item(quantity=10)
    order = make_order(items=[item], total_boxes=0, is_total_boxes_confirmed=False)
    service = _service(order)
    saved = service.save_draft(
        order.id,
        OrderDraft(item_edits={item.id: ItemEdit(quantity=12)}, percentage=Decimal("15")),
        "admin",
    )
    assert saved.status == "pending"
    assert saved.items[0].quantity == 12
    assert saved.percentage == Decimal("15")


def test_save_draft_rejects_negative_quantity():
    item = line_item(quantity=10)
    order = make_order(items=[item])
    with pytest.raises(DispatchValidationError):
        _service(order).save_draft(order.id, OrderDraft(item_edits={item.id: ItemEdit(quantity=-1)}), "admin")


def test_cancel_and_delete():
    order = make_order()
    service = _service(order)
    with pytest.raises(PermissionDenied):
        service.cancel(order.id, "admin")
    assert service.cancel(order.id, "super-admin").status == "cancelled"
    service.delete(order.id, "super-admin")
    assert service.orders.calls == ["cancel", "delete"]
