"""Tests for Transaction and TransactionLog."""
import pytest

from widgetstore import FieldChange, InvariantViolation, Transaction, TransactionLog, TransactionSource


def txn(seq, value=None, source=TransactionSource.USER):
    value = seq if value is None else value
    return Transaction.create(seq, "widgets", [FieldChange("w1", "left", value - 1, value)], source=source)


class TestTransaction:
    """Test transaction values."""

    def test_inverted_swaps_values(self):
        transaction = Transaction.create(1, "widgets", [
            FieldChange("w1", "left", 0, 10),
            FieldChange("w1", "top", 0, 20),
        ])
        inverse = transaction.inverted()
        assert [(c.field, c.previous_value, c.new_value) for c in inverse.changes] == [
            ("top", 20, 0),
            ("left", 10, 0),
        ]
        assert inverse.seq == transaction.seq

    def test_record_ids_are_unique_in_order(self):
        transaction = Transaction.create(1, "widgets", [
            FieldChange("b", "left", 0, 1),
            FieldChange("a", "left", 0, 1),
            FieldChange("b", "top", 0, 1),
        ])
        assert transaction.record_ids == ("b", "a")

    def test_to_dict(self):
        data = txn(3).to_dict()
        assert data["seq"] == 3
        assert data["source"] == "user"
        assert data["changes"][0] == {"record_id": "w1", "field": "left", "previous_value": 2, "new_value": 3}


class TestTransactionLog:
    """Test cursor-based undo/redo traversal."""

    def test_empty_log_undo_redo_return_none(self):
        log = TransactionLog()
        assert log.undo() is None
        assert log.redo() is None
        assert log.cursor == 0

    def test_undo_returns_inverse_and_moves_cursor(self):
        log = TransactionLog()
        log.commit(txn(1))
        log.commit(txn(2))

        inverse = log.undo()
        assert inverse.seq == 2
        assert inverse.changes[0].new_value == 1
        assert log.cursor == 1
        assert log.can_redo

    def test_redo_returns_forward_transaction(self):
        log = TransactionLog()
        log.commit(txn(1))
        log.undo()
        forward = log.redo()
        assert forward.changes[0].new_value == 1
        assert log.cursor == 1
        assert log.redo() is None

    def test_commit_after_undo_discards_redo_branch(self):
        log = TransactionLog()
        log.commit(txn(1))
        log.commit(txn(2))
        log.undo()
        log.commit(txn(3))

        assert [t.seq for t in log.entries()] == [1, 3]
        assert log.redo() is None

    def test_replayed_transaction_cannot_be_logged(self):
        log = TransactionLog()
        with pytest.raises(InvariantViolation):
            log.commit(txn(1, source=TransactionSource.UNDO))

    def test_seq_must_increase(self):
        log = TransactionLog()
        log.commit(txn(2))
        with pytest.raises(InvariantViolation):
            log.commit(txn(2))

    def test_max_length_evicts_oldest(self):
        log = TransactionLog(max_length=2)
        for seq in (1, 2, 3):
            log.commit(txn(seq))

        assert [t.seq for t in log.entries()] == [2, 3]
        assert log.cursor == 2
        assert log.undo().seq == 3
        assert log.undo().seq == 2
        assert log.undo() is None

    def test_invalid_max_length(self):
        with pytest.raises(ValueError):
            TransactionLog(max_length=0)

    def test_clear(self):
        log = TransactionLog()
        log.commit(txn(1))
        log.clear()
        assert len(log) == 0
        assert not log.can_undo
