from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone

import pytest

from facturas.core import (
    ColorVariant,
    ConflictError,
    ErrorCodes,
    InvoiceItemData,
    InvoiceManager,
    NotFoundError,
    ReadOnlyError,
    ValidationError,
    check_version,
    format_version,
    parse_version,
    transition_to_final,
)
from facturas.core.concurrency import claim_draft
from facturas.data import database as db
from facturas.data.models import InvoiceStatus, next_version


def seed_draft(session):
    return InvoiceManager(session).create_draft(
        nro_factura="F-200",
        items=[
            InvoiceItemData(
                marca="Acme",
                tipo_prenda="Tee",
                codigo_articulo="T1",
                curva_talles=["S", "M"],
                colores=[ColorVariant("001", "Negro", {"S": 2})],
            )
        ],
    )


# ---------------------------
# Tokens
# ---------------------------

def test_check_version_accepts_exact_match():
    now = datetime(2026, 3, 1, 10, 0, 0, 123456)
    check_version(now, now)
    check_version(format_version(now), now)


def test_check_version_rejects_one_microsecond_difference():
    now = datetime(2026, 3, 1, 10, 0, 0, 123456)
    with pytest.raises(ConflictError):
        check_version(now + timedelta(microseconds=1), now)
    with pytest.raises(ConflictError):
        check_version(format_version(now - timedelta(microseconds=1)), now)


def test_check_version_skipped_without_expected_token():
    check_version(None, datetime(2026, 3, 1))


def test_check_version_normalizes_timezones():
    naive_utc = datetime(2026, 3, 1, 13, 0, 0, 500)
    other_zone = datetime(2026, 3, 1, 10, 0, 0, 500, tzinfo=timezone(timedelta(hours=-3)))
    check_version(other_zone, naive_utc)
    check_version("2026-03-01T10:00:00.000500-03:00", naive_utc)


def test_token_round_trips_through_string():
    token = datetime(2026, 3, 1, 10, 0, 0, 7)
    text = format_version(token)
    assert text == "2026-03-01T10:00:00.000007Z"
    assert parse_version(text) == token


def test_invalid_token_is_validation_error():
    with pytest.raises(ValidationError):
        check_version("ayer", datetime(2026, 3, 1))


def test_next_version_is_strictly_increasing():
    future = datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(days=1)
    assert next_version(future) == future + timedelta(microseconds=1)


# ---------------------------
# Transición condicional a FINAL
# ---------------------------

def test_transition_with_stale_token_is_conflict(session):
    inv = seed_draft(session)
    stale = inv.updated_at - timedelta(microseconds=1)

    with pytest.raises(ConflictError):
        transition_to_final(session, inv.id, stale)
    session.rollback()

    assert InvoiceManager(session).get_invoice(inv.id).estado == InvoiceStatus.DRAFT.value


def test_transition_on_missing_invoice_is_not_found(session):
    with pytest.raises(NotFoundError):
        transition_to_final(session, 9999, datetime(2026, 1, 1))


def test_second_conditional_write_loses(session):
    inv = seed_draft(session)
    token = inv.updated_at

    first = db.new_session()
    second = db.new_session()
    try:
        finalized = transition_to_final(first, inv.id, token)
        first.commit()
        assert finalized.estado == InvoiceStatus.FINAL.value

        with pytest.raises(ReadOnlyError) as exc:
            transition_to_final(second, inv.id, token)
        assert exc.value.code == ErrorCodes.INVOICE_ALREADY_FINALIZED
        second.rollback()
    finally:
        first.close()
        second.close()


def test_concurrent_finalize_only_one_wins(session):
    inv = seed_draft(session)
    token = format_version(inv.updated_at)
    barrier = threading.Barrier(2)
    outcomes = []
    lock = threading.Lock()

    def worker():
        s = db.new_session()
        try:
            barrier.wait()
            InvoiceManager(s).finalize(inv.id, token)
            result = "ok"
        except (ReadOnlyError, ConflictError) as exc:
            result = exc.code
        finally:
            s.close()
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=worker) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert outcomes.count("ok") == 1
    loser = [r for r in outcomes if r != "ok"][0]
    assert loser in (ErrorCodes.INVOICE_ALREADY_FINALIZED, ErrorCodes.OPTIMISTIC_LOCK_CONFLICT)
    assert InvoiceManager(session).get_invoice(inv.id).estado == InvoiceStatus.FINAL.value


def test_concurrent_draft_updates_only_one_wins(session):
    inv = seed_draft(session)
    token = format_version(inv.updated_at)
    barrier = threading.Barrier(2)
    outcomes = []
    lock = threading.Lock()

    def worker(proveedor):
        s = db.new_session()
        try:
            barrier.wait()
            InvoiceManager(s).update_draft(inv.id, proveedor=proveedor, expected_updated_at=token)
            result = "ok"
        except ConflictError as exc:
            result = exc.code
        finally:
            s.close()
        with lock:
            outcomes.append((proveedor, result))

    threads = [threading.Thread(target=worker, args=(name,)) for name in ("Uno", "Dos")]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    results = [r for _, r in outcomes]
    assert sorted(results) == sorted(["ok", ErrorCodes.OPTIMISTIC_LOCK_CONFLICT])
    winner = next(p for p, r in outcomes if r == "ok")

    current = InvoiceManager(session).get_invoice(inv.id)
    assert current.proveedor == winner
    assert current.updated_at > inv.updated_at


def test_stale_draft_update_is_conflict(session):
    inv = seed_draft(session)
    token = inv.updated_at

    other = db.new_session()
    try:
        InvoiceManager(other).update_draft(inv.id, proveedor="Primero", expected_updated_at=token)
    finally:
        other.close()

    with pytest.raises(ConflictError):
        InvoiceManager(session).update_draft(inv.id, proveedor="Segundo", expected_updated_at=token)
    assert InvoiceManager(session).get_invoice(inv.id).proveedor == "Primero"


def test_claim_draft_conditional_write_rejects_stale_token(session):
    inv = seed_draft(session)
    token = inv.updated_at

    other = db.new_session()
    try:
        claim_draft(other, inv.id, token)
        other.commit()
    finally:
        other.close()

    with pytest.raises(ConflictError):
        claim_draft(session, inv.id, token)
    session.rollback()


def test_claim_draft_on_final_invoice_is_read_only(session):
    inv = seed_draft(session)
    transition_to_final(session, inv.id, inv.updated_at)
    session.commit()

    with pytest.raises(ReadOnlyError) as exc:
        claim_draft(session, inv.id, None)
    assert exc.value.code == ErrorCodes.INVOICE_FINAL_READ_ONLY
    session.rollback()


def test_claim_draft_returns_newer_token(session):
    inv = seed_draft(session)
    previous = inv.updated_at
    new_token = claim_draft(session, inv.id, format_version(previous))
    session.commit()

    assert new_token > previous
    assert InvoiceManager(session).get_invoice(inv.id).updated_at == new_token
