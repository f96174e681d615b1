import threading
import uuid
from datetime import timedelta

import pytest

from authflow.application.services.code_issuer import CodeIssuer
from authflow.domain.models import Account, CodePurpose, PendingCode
from authflow.domain.ports.persistence import DuplicateEmailError


def _account(clock, email="alice@example.com", **overrides) -> Account:
    values = dict(
        id=uuid.uuid4().hex,
        email=email,
        password_hash="hashed",
        created_at=clock.now(),
        updated_at=clock.now(),
    )
    values.update(overrides)
    return Account(**values)


def test_insert_normalizes_email_and_round_trips(store, clock):
    code = PendingCode(CodeIssuer.hash_code("123456"), clock.now() + timedelta(minutes=15))
    account = store.insert(_account(clock, email="  Alice@Example.COM ", pending_email_code=code))

    loaded = store.find_by_email("ALICE@example.com")

    assert loaded is not None
    assert loaded.id == account.id
    assert loaded.email == "alice@example.com"
    assert loaded.pending_email_code == code
    assert loaded.created_at == clock.now()
    assert store.find_by_id(account.id).email == "alice@example.com"


def test_insert_rejects_duplicate_after_normalization(store, clock):
    store.insert(_account(clock))

    with pytest.raises(DuplicateEmailError):
        store.insert(_account(clock, email="ALICE@example.com "))


def test_set_pending_code_skips_verified_or_inactive_accounts(store, clock):
    expires = clock.now() + timedelta(minutes=15)
    verified = store.insert(_account(clock, email="verified@example.com", email_verified=True))
    inactive = store.insert(_account(clock, email="inactive@example.com", is_active=False))
    pending = store.insert(_account(clock, email="pending@example.com"))

    assert not store.set_pending_code(verified.id, CodePurpose.EMAIL_VERIFICATION, "digest", expires)
    assert not store.set_pending_code(inactive.id, CodePurpose.PASSWORD_RESET, "digest", expires)
    assert store.set_pending_code(verified.id, CodePurpose.PASSWORD_RESET, "digest", expires)
    assert store.set_pending_code(pending.id, CodePurpose.EMAIL_VERIFICATION, "digest", expires)

    assert store.find_by_id(verified.id).pending_email_code is None
    assert store.find_by_id(pending.id).pending_email_code == PendingCode("digest", expires)


def test_update_profile_writes_only_profile_columns(store, clock):
    account = store.insert(_account(clock))
    store.mark_email_verified(account.id)
    clock.advance(minutes=1)

    assert store.update_profile(account.id, {"display_name": "Alice", "first_name": "Alice"})

    loaded = store.find_by_id(account.id)
    assert loaded.display_name == "Alice"
    assert loaded.profile.first_name == "Alice"
    assert loaded.email_verified
    assert loaded.updated_at == clock.now()
    with pytest.raises(ValueError):
        store.update_profile(account.id, {"password_hash": "x"})


def test_deactivate_is_one_way(store, clock):
    account = store.insert(_account(clock))

    assert store.deactivate(account.id)
    assert not store.deactivate(account.id)
    assert not store.update_profile(account.id, {"display_name": "Alice"})
    assert not store.find_by_id(account.id).is_active


def test_successful_login_requires_active_verified_account(store, clock):
    account = store.insert(_account(clock))

    assert not store.record_successful_login(account.id, "hashed", clock.now())
    store.mark_email_verified(account.id)
    assert store.record_successful_login(account.id, "hashed", clock.now())
    store.deactivate(account.id)
    assert not store.record_successful_login(account.id, "hashed", clock.now())


def test_unknown_account_writes_report_no_row(store, clock):
    assert not store.deactivate("missing")
    assert store.record_failed_login("missing", clock.now(), 5, clock.now()) == 0


def test_health_check(store):
    assert store.health_check()["status"] == "healthy"


def test_consume_email_code_is_single_use(store, clock):
    digest = CodeIssuer.hash_code("123456")
    account = store.insert(
        _account(clock, pending_email_code=PendingCode(digest, clock.now() + timedelta(minutes=15)))
    )

    assert store.consume_email_code(account.id, digest, clock.now())
    assert not store.consume_email_code(account.id, digest, clock.now())

    loaded = store.find_by_id(account.id)
    assert loaded.email_verified
    assert loaded.pending_email_code is None


def test_consume_email_code_rejects_wrong_hash_or_expired(store, clock):
    digest = CodeIssuer.hash_code("123456")
    account = store.insert(
        _account(clock, pending_email_code=PendingCode(digest, clock.now() + timedelta(minutes=15)))
    )

    assert not store.consume_email_code(account.id, CodeIssuer.hash_code("654321"), clock.now())
    assert not store.consume_email_code(account.id, digest, clock.now() + timedelta(minutes=16))
    assert not store.find_by_id(account.id).email_verified


def test_consume_reset_code_swaps_password_and_clears_lock(store, clock):
    digest = CodeIssuer.hash_code("123456")
    account = store.insert(
        _account(
            clock,
            pending_reset_code=PendingCode(digest, clock.now() + timedelta(minutes=15)),
            failed_login_count=5,
            locked_until=clock.now() + timedelta(minutes=30),
        )
    )

    assert store.consume_reset_code(account.id, digest, clock.now(), "new-hash")
    assert not store.consume_reset_code(account.id, digest, clock.now(), "other-hash")

    loaded = store.find_by_id(account.id)
    assert loaded.password_hash == "new-hash"
    assert loaded.pending_reset_code is None
    assert loaded.failed_login_count == 0
    assert loaded.locked_until is None


def test_clear_pending_code_only_touches_one_purpose(store, clock):
    expires = clock.now() + timedelta(minutes=15)
    account = store.insert(
        _account(
            clock,
            pending_email_code=PendingCode("email-digest", expires),
            pending_reset_code=PendingCode("reset-digest", expires),
        )
    )

    store.clear_pending_code(account.id, CodePurpose.PASSWORD_RESET)
    loaded = store.find_by_id(account.id)

    assert loaded.pending_reset_code is None
    assert loaded.pending_email_code == PendingCode("email-digest", expires)


def test_clear_pending_code_with_hash_keeps_a_newer_code(store, clock):
    expires = clock.now() + timedelta(minutes=15)
    account = store.insert(_account(clock, pending_email_code=PendingCode("old", expires)))
    store.set_pending_code(account.id, CodePurpose.EMAIL_VERIFICATION, "new", expires)

    store.clear_pending_code(account.id, CodePurpose.EMAIL_VERIFICATION, "old")

    assert store.find_by_id(account.id).pending_email_code == PendingCode("new", expires)


def test_purge_expired_codes_counts_cleared_codes(store, clock):
    soon = clock.now() + timedelta(minutes=1)
    later = clock.now() + timedelta(hours=1)
    first = store.insert(
        _account(
            clock,
            email="a@example.com",
            pending_email_code=PendingCode("a", soon),
            pending_reset_code=PendingCode("b", soon),
        )
    )
    second = store.insert(_account(clock, email="b@example.com", pending_email_code=PendingCode("c", later)))

    assert store.purge_expired_codes(clock.now() + timedelta(minutes=5)) == 2

    assert store.find_by_id(first.id).pending_email_code is None
    assert store.find_by_id(first.id).pending_reset_code is None
    assert store.find_by_id(second.id).pending_email_code is not None


def test_concurrent_signups_for_same_email_create_one_account(store, clock):
    results = []
    barrier = threading.Barrier(8)

    def worker() -> None:
        barrier.wait()
        try:
            store.insert(_account(clock, email="race@example.com"))
            results.append("created")
        except DuplicateEmailError:
            results.append("conflict")

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert results.count("created") == 1
    assert results.count("conflict") == 7


def test_concurrent_code_consumption_succeeds_once(store, clock):
    digest = CodeIssuer.hash_code("123456")
    account = store.insert(
        _account(clock, pending_reset_code=PendingCode(digest, clock.now() + timedelta(minutes=15)))
    )
    outcomes = []
    barrier = threading.Barrier(8)

    def worker(index: int) -> None:
        barrier.wait()
        outcomes.append(store.consume_reset_code(account.id, digest, clock.now(), f"hash-{index}"))

    threads = [threading.Thread(target=worker, args=(index,)) for index in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert outcomes.count(True) == 1
