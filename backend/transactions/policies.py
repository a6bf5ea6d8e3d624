# transactions/policies.py
"""
Business policy functions for transaction operations.

Workflow rules (what may change after posting, which statuses are final)
are enforced HERE. Model.save() only enforces row invariants.

Policies return (bool, str) tuples:

    allowed, reason = can_delete_transaction(actor, txn)
    if not allowed:
        return CommandResult.fail(code_for(txn), reason)
"""

from universal.models import Transaction


Status = Transaction.Status


def is_terminal(txn) -> bool:
    return txn.transaction_status in Transaction.TERMINAL_STATUSES


def can_delete_transaction(actor, txn) -> tuple[bool, str]:
    """Only drafts can be removed. Anything else is corrected by VOID/REVERSE."""
    if txn.transaction_status == Status.POSTED:
        return False, "Posted transactions cannot be deleted. Reverse them instead."
    if txn.transaction_status != Status.DRAFT:
        return False, f"Only draft transactions can be deleted (status is {txn.transaction_status})."
    return True, ""


def validate_status_transition(old_status, new_status) -> tuple[bool, str]:
    """
    Status changes allowed through UPDATE.

    Allowed transitions:
    - DRAFT <-> PENDING (still being edited)
    - DRAFT / PENDING -> COMPLETED (sale committed)
    - DRAFT / PENDING / COMPLETED -> POSTED

    POSTED never goes back; it only leaves through VOID or REVERSE.
    """
    if old_status == new_status:
        return True, ""

    allowed_transitions = {
        (Status.DRAFT, Status.PENDING),
        (Status.PENDING, Status.DRAFT),
        (Status.DRAFT, Status.COMPLETED),
        (Status.PENDING, Status.COMPLETED),
        (Status.DRAFT, Status.POSTED),
        (Status.PENDING, Status.POSTED),
        (Status.COMPLETED, Status.POSTED),
    }
    if (old_status, new_status) in allowed_transitions:
        return True, ""

    if old_status == Status.POSTED:
        return False, f"Posted transactions cannot move back to {new_status}. Reverse or void them instead."
    return False, f"Invalid status transition: {old_status} -> {new_status}"


def can_update_transaction(actor, txn, header_changes: dict) -> tuple[bool, str]:
    if is_terminal(txn):
        return False, f"Transaction is {txn.transaction_status} and can no longer change."
    new_status = header_changes.get("transaction_status")
    if new_status is None:
        return True, ""
    if new_status in Transaction.TERMINAL_STATUSES:
        return False, f"Use the {'VOID' if new_status == Status.VOIDED else 'REVERSE'} action to make a transaction {new_status}."
    return validate_status_transition(txn.transaction_status, new_status)


def can_change_date(actor, txn) -> tuple[bool, str]:
    if txn.transaction_status == Status.POSTED:
        return False, "The date of a posted transaction cannot change."
    return True, ""


def can_void_transaction(actor, txn) -> tuple[bool, str]:
    if is_terminal(txn):
        return False, f"Transaction is already {txn.transaction_status}."
    return True, ""


def can_reverse_transaction(actor, txn) -> tuple[bool, str]:
    if is_terminal(txn):
        return False, f"Transaction is already {txn.transaction_status}."
    if txn.transaction_status not in (Status.COMPLETED, Status.POSTED):
        return False, "Only completed or posted transactions can be reversed."
    return True, ""
