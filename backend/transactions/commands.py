# transactions/commands.py
"""
Transaction store.

A transaction header and its lines are one unit: created together,
read together, never partially written. Commands:

1. Resolve the actor and organization
2. Validate the header, every line, line numbering and journal balance
3. Write header + lines in one atomic block
4. Return a CommandResult whose data always carries a non-null
   transaction_id on success

Posted transactions are immutable except for status and metadata.
Corrections are new transactions (REVERSE), never rewrites.

Usage:
    result = txn_crud(
        "CREATE", actor_user_id, organization_id,
        transaction={"transaction_type": "sale",
                     "smart_code": "HERA.SALON.SALE.TXN.RETAIL.V1",
                     "source_entity_id": customer_id},
        lines=[{"line_type": "service", "line_amount": "85.99"}],
    )
"""

import logging
import uuid
from datetime import date, datetime, time

from django.db import IntegrityError, transaction
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from ops.metrics import track_command
from tenancy.authz import actor_or_failure
from tenancy.policies import as_uuid, get_scoped, scoped
from transactions.policies import (
    can_change_date,
    can_delete_transaction,
    can_reverse_transaction,
    can_update_transaction,
    can_void_transaction,
)
from transactions.serializers import AmountError, QUANTITY_Q, money, serialize_transaction, to_decimal
from universal import smart_codes
from universal.conf import hera_setting
from universal.models import Entity, Transaction, TransactionLine
from universal.results import CommandResult, ErrorCode, smart_code_failure
from universal.write_barrier import store_writes_allowed


logger = logging.getLogger(__name__)


TRANSACTION_ACTIONS = ("CREATE", "READ", "QUERY", "UPDATE", "DELETE", "VOID", "REVERSE")

HEADER_FIELDS = {
    "transaction_type", "transaction_code", "transaction_date", "smart_code",
    "source_entity_id", "target_entity_id", "total_amount", "transaction_status",
    "transaction_currency_code", "metadata",
}
LINE_FIELDS = {
    "line_number", "line_type", "line_entity_id", "description", "quantity",
    "unit_amount", "line_amount", "debit_amount", "credit_amount", "smart_code", "line_data",
}
UPDATABLE_HEADER_FIELDS = {"transaction_status", "metadata", "transaction_date"}
UPDATABLE_LINE_FIELDS = {"line_data"}
ID_FIELDS = {"transaction_id", "id"}

DEFAULT_QUERY_LIMIT = 100
MAX_QUERY_LIMIT = 1000

Status = Transaction.Status


# =============================================================================
# Helpers
# =============================================================================

def parse_transaction_date(value):
    """
    Parse a header date: datetime, date, ISO datetime or ISO date string.

    Dates without a time mean midnight in the current timezone. Naive
    datetimes are interpreted in the current timezone.

    Raises:
        ValueError: unparseable value
    """
    if value is None or value == "":
        return timezone.now()
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    elif isinstance(value, str):
        parsed = parse_datetime(value)
        if parsed is None:
            day = parse_date(value)
            if day is None:
                raise ValueError(f"Invalid transaction_date {value!r}.")
            parsed = datetime.combine(day, time.min)
    else:
        raise ValueError(f"Invalid transaction_date {value!r}.")

    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed, timezone.get_current_timezone())
    return parsed


def generate_transaction_code(transaction_type: str, when) -> str:
    prefix = "".join(ch for ch in transaction_type.upper() if ch.isalnum())[:12] or "TXN"
    return f"{prefix}-{when:%Y%m%d}-{uuid.uuid4().hex[:8].upper()}"


def resolve_currency(actor, requested) -> str:
    """Payload currency, else the organization's default, else the engine default."""
    code = requested or (actor.organization.settings or {}).get("default_currency") or hera_setting("DEFAULT_CURRENCY")
    return str(code).strip().upper()


def _transaction_id(payload: dict):
    return payload.get("transaction_id") or payload.get("id")


def _entity_ref(actor, entity_id, label):
    """Resolve an optional entity reference inside the organization."""
    if entity_id in (None, ""):
        return None, None
    entity = get_scoped(Entity, actor, entity_id)
    if entity is None:
        return None, CommandResult.fail(
            ErrorCode.NOT_FOUND,
            f"{label} not found.",
            details={"field": label, "entity_id": str(entity_id)},
        )
    return entity, None


def _load(actor, transaction_id, for_update=False):
    return get_scoped(Transaction, actor, transaction_id, for_update=for_update)


def _payload(txn, lines=None) -> dict:
    if lines is None:
        lines = list(txn.lines.all().order_by("line_number"))
    return {"transaction_id": str(txn.id), "transaction": serialize_transaction(txn, lines)}


# =============================================================================
# Validation (no writes)
# =============================================================================

def check_line_sequence(lines: list):
    """
    Line numbers must be dense from 1.

    Lines given without any numbers are numbered in order. Mixing numbered
    and unnumbered lines, gaps and duplicates are rejected.

    Returns:
        (list[int], None) or (None, CommandResult failure)
    """
    given = [line.get("line_number") for line in lines]
    if all(number is None for number in given):
        return list(range(1, len(lines) + 1)), None

    expected = list(range(1, len(lines) + 1))
    details = {"line_numbers": given, "expected": expected}

    if any(number is None for number in given):
        return None, CommandResult.fail(
            ErrorCode.LINE_SEQUENCE_INVALID,
            "Either every line or no line must carry a line_number.",
            details=details,
        )
    if any(isinstance(n, bool) or not isinstance(n, int) for n in given):
        return None, CommandResult.fail(
            ErrorCode.LINE_SEQUENCE_INVALID,
            "Line numbers must be integers.",
            details=details,
        )
    if sorted(given) != expected:
        return None, CommandResult.fail(
            ErrorCode.LINE_SEQUENCE_INVALID,
            f"Line numbers must be a dense sequence 1..{len(lines)} without gaps or duplicates.",
            details=details,
        )
    return given, None


def prepare_header(actor, header: dict):
    """
    Validate a CREATE header.

    Returns:
        (dict of Transaction kwargs, None) or (None, CommandResult failure)
    """
    unknown = set(header) - HEADER_FIELDS
    if unknown:
        return None, CommandResult.fail(
            ErrorCode.VALIDATION_ERROR,
            f"Unknown transaction field(s): {', '.join(sorted(unknown))}.",
        )

    transaction_type = str(header.get("transaction_type") or "").strip().lower()
    if not transaction_type:
        return None, CommandResult.fail(ErrorCode.VALIDATION_ERROR, "transaction.transaction_type is required.")

    validation = smart_codes.validate(header.get("smart_code"))
    if not validation.valid:
        return None, smart_code_failure("transaction", validation)

    status = header.get("transaction_status") or Status.DRAFT
    if status not in Status.values or status in Transaction.TERMINAL_STATUSES:
        return None, CommandResult.fail(
            ErrorCode.VALIDATION_ERROR,
            f"transaction_status '{status}' is not valid for a new transaction.",
        )

    try:
        transaction_date = parse_transaction_date(header.get("transaction_date"))
    except ValueError as exc:
        return None, CommandResult.fail(ErrorCode.VALIDATION_ERROR, str(exc))

    currency = resolve_currency(actor, header.get("transaction_currency_code"))
    if len(currency) != 3 or not currency.isalpha():
        return None, CommandResult.fail(
            ErrorCode.VALIDATION_ERROR,
            f"transaction_currency_code '{currency}' must be a 3-letter ISO code.",
        )

    metadata = header.get("metadata") or {}
    if not isinstance(metadata, dict):
        return None, CommandResult.fail(ErrorCode.VALIDATION_ERROR, "transaction.metadata must be an object.")

    total_amount = None
    if header.get("total_amount") not in (None, ""):
        try:
            total_amount = money(to_decimal(header["total_amount"]))
        except AmountError:
            return None, CommandResult.fail(ErrorCode.VALIDATION_ERROR, "total_amount must be a number.")

    source, failure = _entity_ref(actor, header.get("source_entity_id"), "source_entity_id")
    if failure:
        return None, failure
    target, failure = _entity_ref(actor, header.get("target_entity_id"), "target_entity_id")
    if failure:
        return None, failure

    transaction_code = str(header.get("transaction_code") or "").strip() or \
        generate_transaction_code(transaction_type, timezone.localtime(transaction_date))

    return {
        "organization": actor.organization,
        "transaction_type": transaction_type,
        "transaction_code": transaction_code,
        "transaction_date": transaction_date,
        "smart_code": validation.normalized,
        "source_entity": source,
        "target_entity": target,
        "total_amount": total_amount,
        "transaction_status": status,
        "transaction_currency_code": currency,
        "metadata": metadata,
        "created_by": actor.actor_user_id,
        "updated_by": actor.actor_user_id,
    }, None


def prepare_lines(actor, lines: list, header_smart_code: str):
    """
    Validate CREATE lines.

    A line without a smart code inherits the header's.

    Returns:
        (list of TransactionLine kwargs, None) or (None, CommandResult failure)
    """
    if not isinstance(lines, list):
        return None, CommandResult.fail(ErrorCode.VALIDATION_ERROR, "lines must be a list.")
    if any(not isinstance(line, dict) for line in lines):
        return None, CommandResult.fail(ErrorCode.VALIDATION_ERROR, "Every line must be an object.")

    numbers, failure = check_line_sequence(lines)
    if failure:
        return None, failure

    prepared = []
    for number, line in zip(numbers, lines):
        unknown = set(line) - LINE_FIELDS
        if unknown:
            return None, CommandResult.fail(
                ErrorCode.VALIDATION_ERROR,
                f"Line {number}: unknown field(s) {', '.join(sorted(unknown))}.",
            )

        code = line.get("smart_code") or header_smart_code
        validation = smart_codes.validate(code)
        if not validation.valid:
            return None, smart_code_failure(f"line {number}", validation)

        try:
            quantity = to_decimal(line.get("quantity"), default=to_decimal("1")).quantize(QUANTITY_Q)
            unit_amount = money(to_decimal(line.get("unit_amount")))
            if line.get("line_amount") in (None, ""):
                line_amount = money(quantity * unit_amount)
            else:
                line_amount = money(to_decimal(line["line_amount"]))
            debit = line.get("debit_amount")
            credit = line.get("credit_amount")
            debit = None if debit in (None, "") else money(to_decimal(debit))
            credit = None if credit in (None, "") else money(to_decimal(credit))
        except AmountError:
            return None, CommandResult.fail(
                ErrorCode.VALIDATION_ERROR,
                f"Line {number}: amounts must be numbers.",
                details={"line_number": number},
            )

        if (debit is not None and debit < 0) or (credit is not None and credit < 0):
            return None, CommandResult.fail(
                ErrorCode.VALIDATION_ERROR,
                f"Line {number}: debit_amount and credit_amount cannot be negative.",
                details={"line_number": number},
            )

        line_data = line.get("line_data") or {}
        if not isinstance(line_data, dict):
            return None, CommandResult.fail(ErrorCode.VALIDATION_ERROR, f"Line {number}: line_data must be an object.")

        line_entity, failure = _entity_ref(actor, line.get("line_entity_id"), f"line {number} line_entity_id")
        if failure:
            return None, failure

        prepared.append({
            "organization": actor.organization,
            "line_number": number,
            "line_type": str(line.get("line_type") or ""),
            "line_entity": line_entity,
            "description": str(line.get("description") or ""),
            "quantity": quantity,
            "unit_amount": unit_amount,
            "line_amount": line_amount,
            "debit_amount": debit,
            "credit_amount": credit,
            "smart_code": validation.normalized,
            "line_data": line_data,
        })

    prepared.sort(key=lambda item: item["line_number"])
    return prepared, None


def line_currency(line: dict, header_currency: str) -> str:
    """A line's currency: line_data.currency, else the header's."""
    currency = (line.get("line_data") or {}).get("currency")
    return str(currency).upper() if currency else header_currency


def check_balance(prepared_lines: list, header_currency: str):
    """
    Journal lines must balance, separately in every currency.

    Applies whenever any line carries a debit or credit amount.

    Returns:
        (total_debit or None, None) or (None, CommandResult failure)
    """
    ledger = [l for l in prepared_lines if l["debit_amount"] is not None or l["credit_amount"] is not None]
    if not ledger:
        return None, None

    totals = {}
    for line in ledger:
        currency = line_currency(line, header_currency)
        debit, credit = totals.get(currency, (to_decimal("0"), to_decimal("0")))
        totals[currency] = (
            debit + (line["debit_amount"] or 0),
            credit + (line["credit_amount"] or 0),
        )

    for currency in sorted(totals):
        total_debit, total_credit = (money(amount) for amount in totals[currency])
        if total_debit != total_credit:
            return None, CommandResult.fail(
                ErrorCode.UNBALANCED_JOURNAL,
                f"Entry is not balanced in {currency}. Debit={total_debit} Credit={total_credit}",
                details={
                    "currency": currency,
                    "total_debit": str(total_debit),
                    "total_credit": str(total_credit),
                    "difference": str(total_debit - total_credit),
                },
            )
    return money(sum((debit for debit, _ in totals.values()), start=to_decimal("0"))), None


def _insert(header_kwargs: dict, line_kwargs: list):
    """Write header + lines. Caller holds an atomic block."""
    with store_writes_allowed():
        txn = Transaction.objects.create(**header_kwargs)
        lines = TransactionLine.objects.bulk_create([
            TransactionLine(transaction=txn, **kwargs) for kwargs in line_kwargs
        ])
    if txn.pk is None:
        raise RuntimeError("Transaction insert returned no id.")
    return txn, lines


# =============================================================================
# Commands
# =============================================================================

def create_transaction(actor, header: dict, lines: list = None, options: dict = None) -> CommandResult:
    """
    Create a transaction header and its lines as one unit.

    Returns:
        CommandResult with {"transaction_id", "transaction": {..., "lines": [...]}}

    Failures (nothing is written):
        SMART_CODE_INVALID, LINE_SEQUENCE_INVALID, UNBALANCED_JOURNAL,
        VALIDATION_ERROR, NOT_FOUND (foreign entity), DUPLICATE (code taken)
    """
    header_kwargs, failure = prepare_header(actor, header)
    if failure:
        return failure

    line_kwargs, failure = prepare_lines(actor, lines or [], header_kwargs["smart_code"])
    if failure:
        return failure

    total_debit, failure = check_balance(line_kwargs, header_kwargs["transaction_currency_code"])
    if failure:
        return failure

    if header_kwargs["total_amount"] is None:
        if total_debit is not None:
            header_kwargs["total_amount"] = total_debit
        else:
            header_kwargs["total_amount"] = money(sum((l["line_amount"] for l in line_kwargs), start=to_decimal("0")))

    try:
        with transaction.atomic():
            txn, created_lines = _insert(header_kwargs, line_kwargs)
    except IntegrityError:
        return CommandResult.fail(
            ErrorCode.DUPLICATE,
            f"Transaction code '{header_kwargs['transaction_code']}' already exists.",
            details={"transaction_code": header_kwargs["transaction_code"]},
        )

    logger.info(
        "Transaction created: %s %s (%d lines)", txn.transaction_type, txn.transaction_code, len(created_lines),
        extra={"organization_id": str(actor.organization_id), "transaction_id": str(txn.id),
               "smart_code": txn.smart_code, "total_amount": str(txn.total_amount)},
    )
    return CommandResult.ok(_payload(txn, created_lines))


def read_transaction(actor, header: dict, options: dict = None) -> CommandResult:
    """Header plus ordered lines. A transaction without lines has lines == []."""
    transaction_id = _transaction_id(header)
    if transaction_id:
        txn = _load(actor, transaction_id)
    elif header.get("transaction_code"):
        txn = scoped(Transaction.objects.all(), actor).filter(transaction_code=header["transaction_code"]).first()
    else:
        return CommandResult.fail(ErrorCode.VALIDATION_ERROR, "transaction_id or transaction_code is required for READ.")

    if txn is None:
        return CommandResult.fail(ErrorCode.NOT_FOUND, "Transaction not found.")
    return CommandResult.ok(_payload(txn))


def query_transactions(actor, filters: dict, options: dict = None) -> CommandResult:
    """
    Filtered list of transactions, newest first.

    Filters: transaction_type, transaction_status, transaction_code, smart_code,
    source_entity_id, target_entity_id, date_from, date_to (inclusive start,
    exclusive end).
    Options: include_lines, include_deleted (voided rows), limit, offset.
    """
    options = options or {}
    qs = scoped(Transaction.objects.all(), actor)

    if filters.get("transaction_type"):
        qs = qs.filter(transaction_type=str(filters["transaction_type"]).strip().lower())
    if filters.get("transaction_status"):
        qs = qs.filter(transaction_status=filters["transaction_status"])
    elif not options.get("include_deleted", False):
        qs = qs.exclude(transaction_status=Status.VOIDED)
    if filters.get("transaction_code"):
        qs = qs.filter(transaction_code=filters["transaction_code"])
    if filters.get("smart_code"):
        qs = qs.filter(smart_code=filters["smart_code"])

    for key, field in (("source_entity_id", "source_entity_id"), ("target_entity_id", "target_entity_id")):
        if filters.get(key):
            pk = as_uuid(filters[key])
            if pk is None:
                return CommandResult.fail(ErrorCode.VALIDATION_ERROR, f"{key} must be a UUID.")
            qs = qs.filter(**{field: pk})

    try:
        if filters.get("date_from"):
            qs = qs.filter(transaction_date__gte=parse_transaction_date(filters["date_from"]))
        if filters.get("date_to"):
            qs = qs.filter(transaction_date__lt=parse_transaction_date(filters["date_to"]))
    except ValueError as exc:
        return CommandResult.fail(ErrorCode.VALIDATION_ERROR, str(exc))

    try:
        limit = int(options.get("limit", DEFAULT_QUERY_LIMIT))
        offset = int(options.get("offset", 0))
    except (TypeError, ValueError):
        return CommandResult.fail(ErrorCode.VALIDATION_ERROR, "limit and offset must be integers.")
    if not 1 <= limit <= MAX_QUERY_LIMIT or offset < 0:
        return CommandResult.fail(
            ErrorCode.VALIDATION_ERROR,
            f"limit must be 1-{MAX_QUERY_LIMIT} and offset must be non-negative.",
        )

    total = qs.count()
    page = qs.order_by("-transaction_date", "-created_at")
    include_lines = bool(options.get("include_lines", False))
    if include_lines:
        page = page.prefetch_related("lines")
    items = [
        serialize_transaction(txn, list(txn.lines.all()) if include_lines else None)
        for txn in page[offset:offset + limit]
    ]
    return CommandResult.ok({"items": items, "total": total, "limit": limit, "offset": offset})


@transaction.atomic
def update_transaction(actor, header: dict, lines: list = None, options: dict = None) -> CommandResult:
    """
    Change header status/metadata/date and the line_data of named lines.

    Lines are never inserted or removed. Any other field is IMMUTABLE_FIELD.
    """
    transaction_id = _transaction_id(header)
    if not transaction_id:
        return CommandResult.fail(ErrorCode.VALIDATION_ERROR, "transaction_id is required for UPDATE.")

    changes = {k: v for k, v in header.items() if k not in ID_FIELDS}
    immutable = set(changes) - UPDATABLE_HEADER_FIELDS
    if immutable:
        return CommandResult.fail(
            ErrorCode.IMMUTABLE_FIELD,
            f"Transaction field(s) cannot be updated: {', '.join(sorted(immutable))}.",
            details={"fields": sorted(immutable)},
        )

    if "transaction_status" in changes and changes["transaction_status"] not in Status.values:
        return CommandResult.fail(
            ErrorCode.VALIDATION_ERROR,
            f"Unknown transaction_status '{changes['transaction_status']}'.",
        )
    if "metadata" in changes and not isinstance(changes["metadata"], dict):
        return CommandResult.fail(ErrorCode.VALIDATION_ERROR, "transaction.metadata must be an object.")
    if "transaction_date" in changes:
        try:
            changes["transaction_date"] = parse_transaction_date(changes["transaction_date"])
        except ValueError as exc:
            return CommandResult.fail(ErrorCode.VALIDATION_ERROR, str(exc))

    line_updates = {}
    for line in lines or []:
        if not isinstance(line, dict) or line.get("line_number") is None:
            return CommandResult.fail(ErrorCode.VALIDATION_ERROR, "Line updates must name a line_number.")
        fields = set(line) - {"line_number"}
        if fields - UPDATABLE_LINE_FIELDS:
            return CommandResult.fail(
                ErrorCode.IMMUTABLE_FIELD,
                f"Line {line['line_number']}: only line_data can be updated.",
                details={"line_number": line["line_number"], "fields": sorted(fields - UPDATABLE_LINE_FIELDS)},
            )
        if not isinstance(line.get("line_data", {}), dict):
            return CommandResult.fail(ErrorCode.VALIDATION_ERROR, "line_data must be an object.")
        line_updates[line["line_number"]] = line.get("line_data") or {}

    txn = _load(actor, transaction_id, for_update=True)
    if txn is None:
        return CommandResult.fail(ErrorCode.NOT_FOUND, "Transaction not found.")

    if "transaction_date" in changes:
        allowed, reason = can_change_date(actor, txn)
        if not allowed:
            return CommandResult.fail(ErrorCode.IMMUTABLE_FIELD, reason, details={"fields": ["transaction_date"]})

    allowed, reason = can_update_transaction(actor, txn, changes)
    if not allowed:
        return CommandResult.fail(ErrorCode.INVALID_STATUS, reason)

    existing = {line.line_number: line for line in txn.lines.select_for_update()}
    missing = sorted(set(line_updates) - set(existing), key=str)
    if missing:
        return CommandResult.fail(
            ErrorCode.NOT_FOUND,
            f"Line(s) not found: {', '.join(str(n) for n in missing)}.",
            details={"line_numbers": missing},
        )

    with store_writes_allowed():
        for number, line_data in line_updates.items():
            line = existing[number]
            line.line_data = {**(line.line_data or {}), **line_data}
            line.save(update_fields=["line_data", "updated_at"])

        if "metadata" in changes:
            txn.metadata = {**(txn.metadata or {}), **changes["metadata"]}
        if "transaction_status" in changes:
            txn.transaction_status = changes["transaction_status"]
        if "transaction_date" in changes:
            txn.transaction_date = changes["transaction_date"]
        txn.updated_by = actor.actor_user_id
        txn.save()

    logger.info(
        "Transaction updated: %s", txn.transaction_code,
        extra={"organization_id": str(actor.organization_id), "transaction_id": str(txn.id),
               "fields": sorted(changes), "lines": sorted(line_updates)},
    )
    return CommandResult.ok(_payload(txn))


@transaction.atomic
def delete_transaction(actor, header: dict, options: dict = None) -> CommandResult:
    """Remove a draft transaction and its lines."""
    txn = _load(actor, _transaction_id(header), for_update=True)
    if txn is None:
        return CommandResult.fail(ErrorCode.NOT_FOUND, "Transaction not found.")

    allowed, reason = can_delete_transaction(actor, txn)
    if not allowed:
        code = ErrorCode.ALREADY_POSTED if txn.transaction_status == Status.POSTED else ErrorCode.INVALID_STATUS
        return CommandResult.fail(code, reason, details={"transaction_status": txn.transaction_status})

    transaction_id = str(txn.id)
    with store_writes_allowed():
        txn.delete()

    logger.info(
        "Transaction deleted: %s", txn.transaction_code,
        extra={"organization_id": str(actor.organization_id), "transaction_id": transaction_id},
    )
    return CommandResult.ok({"transaction_id": transaction_id, "deleted": True})


@transaction.atomic
def void_transaction(actor, header: dict, options: dict = None) -> CommandResult:
    """Soft-cancel a transaction, keeping it and its lines for audit."""
    options = options or {}
    txn = _load(actor, _transaction_id(header), for_update=True)
    if txn is None:
        return CommandResult.fail(ErrorCode.NOT_FOUND, "Transaction not found.")

    allowed, reason = can_void_transaction(actor, txn)
    if not allowed:
        return CommandResult.fail(ErrorCode.INVALID_STATUS, reason)

    previous = txn.transaction_status
    txn.metadata = {
        **(txn.metadata or {}),
        "void_reason": header.get("void_reason") or options.get("reason") or "",
        "voided_at": timezone.now().isoformat(),
        "voided_by": str(actor.actor_user_id),
        "status_before_void": previous,
    }
    txn.transaction_status = Status.VOIDED
    txn.updated_by = actor.actor_user_id
    with store_writes_allowed():
        txn.save()

    logger.info(
        "Transaction voided: %s (was %s)", txn.transaction_code, previous,
        extra={"organization_id": str(actor.organization_id), "transaction_id": str(txn.id)},
    )
    return CommandResult.ok(_payload(txn))


@transaction.atomic
def reverse_transaction(actor, header: dict, options: dict = None) -> CommandResult:
    """
    Reverse a completed or posted transaction.

    Creates a new transaction with swapped debit/credit and negated
    amounts, coded <original code>-REV, and marks the original reversed.

    Returns:
        CommandResult with {"transaction_id": reversal id, "transaction",
        "original_transaction_id"}
    """
    options = options or {}
    original = _load(actor, _transaction_id(header), for_update=True)
    if original is None:
        return CommandResult.fail(ErrorCode.NOT_FOUND, "Transaction not found.")

    allowed, reason = can_reverse_transaction(actor, original)
    if not allowed:
        return CommandResult.fail(ErrorCode.INVALID_STATUS, reason)

    try:
        reversal_date = parse_transaction_date(header.get("reversal_date") or options.get("reversal_date"))
    except ValueError as exc:
        return CommandResult.fail(ErrorCode.VALIDATION_ERROR, str(exc))
    reason = header.get("reversal_reason") or options.get("reason") or ""

    header_kwargs = {
        "organization": actor.organization,
        "transaction_type": original.transaction_type,
        "transaction_code": f"{original.transaction_code}-REV",
        "transaction_date": reversal_date,
        "smart_code": original.smart_code,
        "source_entity": original.source_entity,
        "target_entity": original.target_entity,
        "total_amount": -original.total_amount,
        "transaction_status": original.transaction_status,
        "transaction_currency_code": original.transaction_currency_code,
        "metadata": {
            "reversal_of": str(original.id),
            "reversal_of_code": original.transaction_code,
            "reversal_reason": reason,
        },
        "created_by": actor.actor_user_id,
        "updated_by": actor.actor_user_id,
    }
    line_kwargs = [
        {
            "organization": actor.organization,
            "line_number": line.line_number,
            "line_type": line.line_type,
            "line_entity": line.line_entity,
            "description": f"Reversal: {line.description}".strip() if line.description else "Reversal",
            "quantity": line.quantity,
            "unit_amount": -line.unit_amount,
            "line_amount": -line.line_amount,
            "debit_amount": line.credit_amount,
            "credit_amount": line.debit_amount,
            "smart_code": line.smart_code,
            "line_data": {**(line.line_data or {}), "reversal_of_line": str(line.id)},
        }
        for line in original.lines.select_related("line_entity").order_by("line_number")
    ]

    try:
        with transaction.atomic():
            reversal, reversal_lines = _insert(header_kwargs, line_kwargs)
    except IntegrityError:
        return CommandResult.fail(
            ErrorCode.DUPLICATE,
            f"Transaction code '{header_kwargs['transaction_code']}' already exists.",
            details={"transaction_code": header_kwargs["transaction_code"]},
        )

    original.metadata = {
        **(original.metadata or {}),
        "reversed_by": str(reversal.id),
        "reversed_at": timezone.now().isoformat(),
        "reversal_reason": reason,
    }
    original.transaction_status = Status.REVERSED
    original.updated_by = actor.actor_user_id
    with store_writes_allowed():
        original.save()

    logger.info(
        "Transaction reversed: %s -> %s", original.transaction_code, reversal.transaction_code,
        extra={"organization_id": str(actor.organization_id), "transaction_id": str(reversal.id),
               "original_transaction_id": str(original.id)},
    )
    data = _payload(reversal, reversal_lines)
    data["original_transaction_id"] = str(original.id)
    return CommandResult.ok(data)


# =============================================================================
# Entry point
# =============================================================================

@track_command("transactions", TRANSACTION_ACTIONS)
def txn_crud(
    action: str,
    actor_user_id,
    organization_id,
    transaction: dict = None,
    lines: list = None,
    options: dict = None,
) -> CommandResult:
    """
    Actor-scoped entry point for transaction CRUD.

    Args:
        action: CREATE | READ | QUERY | UPDATE | DELETE | VOID | REVERSE
        actor_user_id: USER entity id of the caller
        organization_id: Target organization
        transaction: Header fields (CREATE), identifiers (READ/UPDATE/...),
            or filters (QUERY)
        lines: Line payloads (CREATE) or line_data updates (UPDATE)
        options: include_lines, include_deleted, limit, offset, reason
    """
    action = (action or "").upper()
    if action not in TRANSACTION_ACTIONS:
        return CommandResult.fail(
            ErrorCode.VALIDATION_ERROR,
            f"Unknown action {action!r}. Expected one of {', '.join(TRANSACTION_ACTIONS)}.",
        )

    actor, failure = actor_or_failure(actor_user_id, organization_id)
    if failure:
        return failure

    header = transaction or {}
    if not isinstance(header, dict):
        return CommandResult.fail(ErrorCode.VALIDATION_ERROR, "transaction must be an object.")
    if options is not None and not isinstance(options, dict):
        return CommandResult.fail(ErrorCode.VALIDATION_ERROR, "options must be an object.")

    if action == "CREATE":
        return create_transaction(actor, header, lines, options)
    if action == "READ":
        return read_transaction(actor, header, options)
    if action == "QUERY":
        return query_transactions(actor, header, options)
    if action == "UPDATE":
        return update_transaction(actor, header, lines, options)
    if action == "DELETE":
        return delete_transaction(actor, header, options)
    if action == "VOID":
        return void_transaction(actor, header, options)
    return reverse_transaction(actor, header, options)
