import threading

import pytest

from credstore.auth.passwords import CredentialHasher
from credstore.errors import HashingUnavailable, PersistenceReadFailure, PersistenceWriteFailure, ServiceUnavailable
from credstore.infra.persistence import PersistenceGateway
from credstore.service import AuthenticationFacade, ChangeOutcome, RegisterOutcome, RemoveOutcome
from credstore.store import CredentialStore


def test_unknown_identity(facade):
    assert facade.authenticate("nobody@x.com", "anything") is False
    assert facade.exists("nobody@x.com") is False


def test_register_then_authenticate(facade):
    assert facade.register("a@x.com", "secret1") == RegisterOutcome.CREATED
    assert facade.authenticate("a@x.com", "secret1") is True
    assert facade.authenticate("a@x.com", "secret2") is False
    assert facade.store.get("a@x.com") != "secret1"


def test_full_scenario(facade):
    facade.register("a@x.com", "secret1")
    assert facade.authenticate("a@x.com", "secret1")
    assert not facade.authenticate("a@x.com", "wrong")
    assert facade.change_password("a@x.com", "secret2") == ChangeOutcome.SUCCESS
    assert not facade.authenticate("a@x.com", "secret1")
    assert facade.authenticate("a@x.com", "secret2")
    facade.remove_user("a@x.com")
    assert not facade.exists("a@x.com")


def test_change_password_unknown_does_not_create(facade):
    assert facade.change_password("ghost@x.com", "pw") == ChangeOutcome.NOT_FOUND
    assert not facade.exists("ghost@x.com")


def test_change_password_empty_is_invalid(facade):
    facade.register("a@x.com", "secret1")
    assert facade.change_password("a@x.com", "") == ChangeOutcome.INVALID
    assert facade.authenticate("a@x.com", "secret1")


def test_remove_user_is_idempotent(facade):
    assert facade.remove_user("ghost@x.com") == RemoveOutcome.NOT_FOUND
    facade.register("a@x.com", "secret1")
    assert facade.remove_user("a@x.com") == RemoveOutcome.REMOVED
    assert facade.remove_user("a@x.com") == RemoveOutcome.NOT_FOUND
    assert not facade.exists("a@x.com")


def test_identity_is_case_insensitive(facade):
    facade.register("  Alice@Example.COM ", "secret1")
    assert facade.exists("alice@example.com")
    assert facade.authenticate("ALICE@example.com", "secret1")
    assert facade.store.load_all().keys() == {"alice@example.com"}


def test_register_invalid_input(facade):
    assert facade.register("   ", "pw") == RegisterOutcome.INVALID
    assert facade.register("a@x.com", "") == RegisterOutcome.INVALID
    assert len(facade.store) == 0


def test_register_existing_overwrites_by_default(facade):
    facade.register("a@x.com", "old")
    assert facade.register("a@x.com", "new") == RegisterOutcome.REPLACED
    assert facade.authenticate("a@x.com", "new")
    assert not facade.authenticate("a@x.com", "old")


def test_register_existing_conflicts_when_overwrite_disabled(hasher, gateway):
    f = AuthenticationFacade(CredentialStore(), hasher, gateway, allow_overwrite=False)
    f.on_start()
    assert f.register("a@x.com", "old") == RegisterOutcome.CREATED
    assert f.register("A@X.com", "new") == RegisterOutcome.CONFLICT
    assert f.authenticate("a@x.com", "old")


class _BrokenHasher(CredentialHasher):
    def hash(self, plain: str) -> str:
        raise HashingUnavailable("boom")


def test_hashing_failure_outcomes(gateway):
    f = AuthenticationFacade(CredentialStore(), _BrokenHasher(time_cost=1, memory_cost=8, parallelism=1), gateway)
    f.on_start()
    assert f.register("b@x.com", "pw") == RegisterOutcome.HASHING_FAILED
    assert not f.exists("b@x.com")
    f.store.put("a@x.com", "x")
    assert f.change_password("a@x.com", "pw") == ChangeOutcome.HASHING_FAILED
    assert f.store.get("a@x.com") == "x"


def test_authenticate_upgrades_weak_digest(hasher, gateway):
    stronger = CredentialHasher(time_cost=2, memory_cost=16, parallelism=1)
    weak = hasher.hash("secret1")
    f = AuthenticationFacade(CredentialStore(), stronger, gateway)
    f.on_start()
    f.store.put("a@x.com", weak)
    assert f.authenticate("a@x.com", "secret1")
    upgraded = f.store.get("a@x.com")
    assert upgraded != weak
    assert not stronger.needs_rehash(upgraded)
    assert f.authenticate("a@x.com", "secret1")


def test_stop_then_start_round_trip(hasher, users_path):
    f = AuthenticationFacade(CredentialStore(), hasher, PersistenceGateway(users_path))
    f.on_start()
    f.register("a@x.com", "secret1")
    f.register("b@x.com", "secret2")
    before = f.store.load_all()

    assert f.on_stop() is True
    assert len(f.store) == 0
    with pytest.raises(ServiceUnavailable):
        f.exists("a@x.com")

    g = AuthenticationFacade(CredentialStore(), hasher, PersistenceGateway(users_path))
    assert g.on_start() == 2
    assert g.store.load_all() == before
    assert g.authenticate("a@x.com", "secret1")
    assert g.authenticate("b@x.com", "secret2")


def test_requests_before_start_are_rejected(hasher, gateway):
    f = AuthenticationFacade(CredentialStore(), hasher, gateway)
    assert not f.running
    with pytest.raises(ServiceUnavailable):
        f.authenticate("a@x.com", "pw")


def test_start_canonicalises_loaded_identities(hasher, gateway):
    gateway.save({"A@x.com ": "h1", "a@X.com": "h2", "b@x.com": "h3"})
    f = AuthenticationFacade(CredentialStore(), hasher, gateway)
    assert f.on_start() == 2
    assert f.store.load_all() == {"a@x.com": "h2", "b@x.com": "h3"}


class _FailingGateway(PersistenceGateway):
    def save(self, table):
        raise PersistenceWriteFailure("disk full")


def test_save_failure_is_reported_and_keeps_table(hasher, users_path):
    f = AuthenticationFacade(CredentialStore(), hasher, _FailingGateway(users_path))
    f.on_start()
    f.register("a@x.com", "secret1")
    assert f.on_stop() is False
    assert f.store.exists("a@x.com")


def test_stop_waits_for_in_flight_requests(hasher, gateway):
    f = AuthenticationFacade(CredentialStore(), hasher, gateway)
    f.on_start()
    entered = threading.Event()
    release = threading.Event()

    def slow_request():
        with f._request():
            entered.set()
            release.wait(5)
            f.store.put("late@x.com", "h1")

    worker = threading.Thread(target=slow_request)
    worker.start()
    entered.wait(5)

    done = threading.Event()
    stopper = threading.Thread(target=lambda: (f.on_stop(), done.set()))
    stopper.start()
    assert not done.wait(0.2)
    with pytest.raises(ServiceUnavailable):
        f.exists("late@x.com")

    release.set()
    worker.join(5)
    stopper.join(5)
    assert done.is_set()
    assert gateway.load() == {"late@x.com": "h1"}


def test_drain_timeout_saves_anyway(hasher, gateway):
    f = AuthenticationFacade(CredentialStore(), hasher, gateway, drain_timeout=0.05)
    f.on_start()
    f.register("a@x.com", "secret1")
    release = threading.Event()
    entered = threading.Event()

    def stuck():
        with f._request():
            entered.set()
            release.wait(5)

    worker = threading.Thread(target=stuck)
    worker.start()
    entered.wait(5)
    assert f.on_stop() is True
    release.set()
    worker.join(5)
    assert set(gateway.load()) == {"a@x.com"}


def test_stats(facade):
    facade.register("a@x.com", "secret1")
    assert facade.stats() == {"users": 1, "running": True, "in_flight": 0}


def test_second_stop_keeps_saved_file(facade, gateway):
    facade.register("a@x.com", "secret1")
    assert facade.on_stop() is True
    saved = gateway.load()
    assert set(saved) == {"a@x.com"}

    assert facade.on_stop() is False
    assert gateway.load() == saved


def test_stop_without_start_keeps_file(hasher, gateway):
    gateway.save({"a@x.com": "h"})
    f = AuthenticationFacade(CredentialStore(), hasher, gateway)
    assert f.on_stop() is False
    assert gateway.load() == {"a@x.com": "h"}


class _FlakyGateway(PersistenceGateway):
    fail = True

    def save(self, table):
        if self.fail:
            raise PersistenceWriteFailure("disk full")
        super().save(table)


def test_stop_retries_after_failed_save(hasher, users_path):
    gw = _FlakyGateway(users_path)
    f = AuthenticationFacade(CredentialStore(), hasher, gw)
    f.on_start()
    f.register("a@x.com", "secret1")
    assert f.on_stop() is False

    gw.fail = False
    assert f.on_stop() is True
    assert set(gw.load()) == {"a@x.com"}
    assert f.on_stop() is False


def test_strict_start_raises_on_corrupt_file(hasher, gateway, users_path):
    users_path.parent.mkdir(parents=True)
    users_path.write_text("users: [unclosed", encoding="utf-8")
    f = AuthenticationFacade(CredentialStore(), hasher, gateway)
    with pytest.raises(PersistenceReadFailure):
        f.on_start(strict=True)
    assert not f.running
    assert f.on_stop() is False
    assert users_path.read_text(encoding="utf-8") == "users: [unclosed"
