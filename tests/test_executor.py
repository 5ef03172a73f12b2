import pytest

from stakefarm.helpers import ContractCalls, DiscordTransactionExecutor, LockHelper

USER_ID = 4242


@pytest.fixture
def lock_helper():
    return LockHelper()


@pytest.fixture
def executor(lock_helper):
    return DiscordTransactionExecutor(USER_ID, lock_helper)


def test_execute_locks_player_until_resolved(executor, lock_helper, settings):
    outcomes = []
    calls = [ContractCalls(settings.contract_address).harvest(7)]

    executor.execute(calls, lambda: outcomes.append("ok"), outcomes.append)

    lock = lock_helper.get_user_lock(USER_ID)
    assert lock.kind == "transaction"
    assert "harvest(7)" in lock.message

    assert executor.resolve_success()
    assert outcomes == ["ok"]
    assert lock_helper.get_user_lock(USER_ID) is None


def test_batch_resolves_exactly_once(executor):
    outcomes = []
    executor.execute([], lambda: outcomes.append("ok"), outcomes.append)

    assert executor.resolve_error("User rejected")
    assert not executor.resolve_success()
    assert not executor.resolve_error("again")
    assert outcomes == ["User rejected"]


def test_second_batch_while_pending_is_refused(executor):
    executor.execute([], lambda: None, lambda reason: None)

    with pytest.raises(RuntimeError):
        executor.execute([], lambda: None, lambda reason: None)


def test_resolve_without_pending_batch_is_a_no_op(executor, lock_helper):
    assert not executor.resolve_success()
    assert lock_helper.get_user_lock(USER_ID) is None


def test_lock_is_not_replaced_while_held(lock_helper):
    assert lock_helper.add_lock(USER_ID, "transaction", "first")
    assert not lock_helper.add_lock(USER_ID, "transaction", "second")
    assert lock_helper.get_user_lock(USER_ID).message == "first"


def test_expired_locks_are_reported(lock_helper):
    lock_helper.add_lock(USER_ID, "transaction", "waiting")
    created = lock_helper.get_user_lock(USER_ID).created_at

    assert lock_helper.expired_user_ids(900, now=created + 899) == []
    assert lock_helper.expired_user_ids(900, now=created + 900) == [USER_ID]


def test_touch_restarts_lock_age(lock_helper):
    lock_helper.add_lock(USER_ID, "transaction", "waiting")
    created = lock_helper.get_user_lock(USER_ID).created_at

    lock_helper.touch(USER_ID, now=created + 900)

    assert lock_helper.expired_user_ids(900, now=created + 1000) == []
    assert lock_helper.get_user_lock(USER_ID).message == "waiting"


def test_pending_batch_remembers_its_contract(executor, settings):
    executor.execute([ContractCalls(settings.contract_address).stake(1)], lambda: None, lambda reason: None)

    assert executor.pending.target == settings.contract_address
