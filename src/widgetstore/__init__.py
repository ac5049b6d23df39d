"""
Transactional placement store for notebook output dashboards.

A dashboard is a free-form canvas of snapshots of notebook cell outputs.
This package keeps the placement records of those snapshots: schema
validated, written in atomic transactions, reversible through undo/redo,
and pushed to listeners as change sets.

Quick Start:
    >>> from widgetstore import Widgetstore, WidgetPosition
    >>>
    >>> store = Widgetstore()
    >>> handle = store.listen_table(Widgetstore.WIDGET_SCHEMA, lambda change: print(change.seq))
    >>> store.add_widget({"widget_id": "w1", "notebook_id": "n1", "cell_id": "c1"})
    1
    >>> store.move_widget("w1", WidgetPosition(left=10, top=20, width=100, height=50))
    2
    True
    >>> store.undo()
    3
    True

Modules:
    - schema: table schemas and field validation
    - records: WidgetInfo / WidgetPosition record types
    - record_table: current value of every record
    - transactions: transactions and the undo/redo log
    - notifier: change sets and subscriptions
    - store: the Widgetstore facade
    - dashboard: UI-agnostic dashboard controller
    - config: StoreConfig and the IdentityResolver protocol
    - errors: exception hierarchy
"""

# Schema
from widgetstore.schema import (
    FieldSpec,
    FieldType,
    TableSchema,
    WIDGET_SCHEMA,
    WIDGET_TABLE,
    POSITION_FIELDS,
)

# Records
from widgetstore.records import (
    DEFAULT_HEIGHT,
    DEFAULT_WIDTH,
    WidgetInfo,
    WidgetPosition,
    create_widget_id,
)

# Table, history, notification
from widgetstore.record_table import RecordTable
from widgetstore.transactions import FieldChange, Transaction, TransactionLog, TransactionSource
from widgetstore.notifier import ChangeNotifier, ChangeSet, Subscription

# Store
from widgetstore.config import IdentityResolver, StoreConfig
from widgetstore.store import Widgetstore
from widgetstore.dashboard import Dashboard

# Errors
from widgetstore.errors import (
    WidgetstoreError,
    SchemaError,
    SchemaErrorKind,
    DuplicateWidgetError,
    ReentrancyError,
    InvariantViolation,
)

__all__ = [
    # Schema
    'FieldSpec',
    'FieldType',
    'TableSchema',
    'WIDGET_SCHEMA',
    'WIDGET_TABLE',
    'POSITION_FIELDS',
    # Records
    'DEFAULT_HEIGHT',
    'DEFAULT_WIDTH',
    'WidgetInfo',
    'WidgetPosition',
    'create_widget_id',
    # Table, history, notification
    'RecordTable',
    'FieldChange',
    'Transaction',
    'TransactionLog',
    'TransactionSource',
    'ChangeNotifier',
    'ChangeSet',
    'Subscription',
    # Store
    'IdentityResolver',
    'StoreConfig',
    'Widgetstore',
    'Dashboard',
    # Errors
    'WidgetstoreError',
    'SchemaError',
    'SchemaErrorKind',
    'DuplicateWidgetError',
    'ReentrancyError',
    'InvariantViolation',
]

__version__ = '0.1.0'
