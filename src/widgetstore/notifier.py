"""
Change notification for store tables.

Listeners subscribe per table and receive one ChangeSet per committed
transaction, synchronously, in commit order. A ChangeSet is never split, so
a listener cannot observe half of a transaction.
"""
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple
import logging

from widgetstore.errors import ReentrancyError
from widgetstore.transactions import FieldChange, Transaction, TransactionSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChangeSet:
    """All field changes of one committed transaction."""
    seq: int
    table: str
    source: TransactionSource
    changes: Tuple[FieldChange, ...]

    @classmethod
    def from_transaction(cls, transaction: Transaction) -> 'ChangeSet':
        return cls(
            seq=transaction.seq,
            table=transaction.table,
            source=transaction.source,
            changes=transaction.changes,
        )

    @property
    def record_ids(self) -> Tuple[str, ...]:
        return tuple(dict.fromkeys(c.record_id for c in self.changes))

    def fields_for(self, record_id: str) -> Tuple[str, ...]:
        """Fields changed on one record."""
        return tuple(c.field for c in self.changes if c.record_id == record_id)


ChangeCallback = Callable[[ChangeSet], None]


class Subscription:
    """Disposable handle returned by ChangeNotifier.listen()."""

    def __init__(self, notifier: 'ChangeNotifier', table: str, callback: ChangeCallback):
        self._notifier = notifier
        self.table = table
        self.callback = callback
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> None:
        """Unsubscribe. Idempotent, and safe to call from inside a callback."""
        if self._disposed:
            return
        self._disposed = True
        self._notifier._remove(self)

    def __enter__(self) -> 'Subscription':
        return self

    def __exit__(self, *exc_info) -> None:
        self.dispose()


class ChangeNotifier:
    """Subscription registry keyed by table name.

    Dispatch iterates over a copy of the subscriber list: a listener
    subscribing or unsubscribing during dispatch only affects later change
    sets.

    A listener that raises is logged and skipped; the remaining listeners
    still receive the change set. ReentrancyError is a misuse of the store:
    the change set is still delivered to every remaining listener, then the
    first ReentrancyError is re-raised.
    """

    def __init__(self):
        self._subscriptions: Dict[str, List[Subscription]] = {}
        self._dispatch_depth: int = 0

    @property
    def dispatching(self) -> bool:
        """True while a change set is being delivered."""
        return self._dispatch_depth > 0

    def listen(self, table: str, callback: ChangeCallback) -> Subscription:
        """Subscribe callback to every change set committed on table."""
        subscription = Subscription(self, table, callback)
        self._subscriptions.setdefault(table, []).append(subscription)
        logger.debug(f"NOTIFY: subscribed {callback!r} to table={table}")
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        subscriptions = self._subscriptions.get(subscription.table, [])
        if subscription in subscriptions:
            subscriptions.remove(subscription)
            logger.debug(f"NOTIFY: unsubscribed {subscription.callback!r} from table={subscription.table}")

    def subscriber_count(self, table: str) -> int:
        return len(self._subscriptions.get(table, []))

    def dispatch(self, change_set: ChangeSet) -> None:
        """Deliver a change set to every current subscriber of its table."""
        subscriptions = list(self._subscriptions.get(change_set.table, []))
        if not subscriptions:
            return
        logger.debug(
            f"NOTIFY: seq={change_set.seq} source={change_set.source.value} "
            f"-> {len(subscriptions)} listener(s)"
        )
        reentrancy_error: Optional[ReentrancyError] = None
        self._dispatch_depth += 1
        try:
            for subscription in subscriptions:
                try:
                    subscription.callback(change_set)
                except ReentrancyError as e:
                    if reentrancy_error is None:
                        reentrancy_error = e
                except Exception as e:
                    logger.warning(f"Error in change listener {subscription.callback!r}: {e}")
        finally:
            self._dispatch_depth -= 1
        if reentrancy_error is not None:
            raise reentrancy_error
