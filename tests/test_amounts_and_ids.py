import pytest

from src.database.redis import TransactionIdRegistry
from src.integrations.gateway.amounts import to_major, to_minor
from src.integrations.gateway.errors import TransactionIdCollisionError
from src.integrations.gateway.transaction_id import TransactionIdGenerator, generate_transaction_id


@pytest.mark.parametrize("major,minor", [(100, 10000), (0.5, 50), (12.34, 1234), ("7.10", 710)])
def test_to_minor(major, minor):
    assert to_minor(major) == minor


def test_minor_major_round_trip():
    for value in (1, 99.99, 250, 0.01):
        assert to_major(to_minor(value)) == value
    assert to_minor(to_major(10000)) == 10000


def test_to_major_keeps_whole_amounts_integral():
    assert to_major(10000) == 100
    assert isinstance(to_major(10000), int)
    assert to_major(1050) == 10.5


def test_to_minor_rejects_sub_minor_precision():
    with pytest.raises(ValueError):
        to_minor(1.005)
    with pytest.raises(ValueError):
        to_minor("abc")


def test_generated_id_format():
    txn = generate_transaction_id()
    assert txn.startswith("TX")
    assert len(txn) == 16
    assert txn[2:].isdigit()


def test_registry_reserve_is_exclusive():
    registry = TransactionIdRegistry()
    assert registry.reserve("TX1", 60) is True
    assert registry.reserve("TX1", 60) is False
    registry.release("TX1")
    assert registry.reserve("TX1", 60) is True


def test_registry_reservation_expires():
    now = [1000.0]
    registry = TransactionIdRegistry(clock=lambda: now[0])
    assert registry.reserve("TX1", 10)
    now[0] += 11
    assert registry.reserve("TX1", 10)


def test_registry_drops_expired_reservations():
    now = [1000.0]
    registry = TransactionIdRegistry(clock=lambda: now[0])
    for i in range(50):
        assert registry.reserve(f"TX{i}", 10)
    now[0] += 11
    assert registry.reserve("TXNEXT", 10)
    assert list(registry._reserved) == ["TXNEXT"]


def test_generator_retries_on_collision_then_gives_up():
    class AlwaysTaken:
        calls = 0

        def reserve(self, transaction_id, ttl_seconds):
            self.calls += 1
            return False

    taken = AlwaysTaken()
    generator = TransactionIdGenerator(taken, max_attempts=3)
    with pytest.raises(TransactionIdCollisionError):
        generator.next_id()
    assert taken.calls == 3


def test_generator_uses_configured_alphabet():
    generator = TransactionIdGenerator(TransactionIdRegistry(), prefix="MP", length=8, alphabet="AB")
    txn = generator.next_id()
    assert txn.startswith("MP")
    assert set(txn[2:]) <= {"A", "B"}
