"""
rebase_ledger - Interest-Bearing Balance Ledger

Holders deposit a base asset and receive credits that grow linearly at a
rate locked at deposit time. Growth is computed lazily on read and settled
into principal before any operation that moves principal.

Usage:
    from rebase_ledger import InterestLedger, Pool, MAX_AMOUNT, UNIT

    ledger = InterestLedger("main", initial_rate=5 * 10**10, verbose=False)
    pool = Pool(ledger)

    pool.deposit("alice", 100 * UNIT)
    ledger.advance_time(2)
    ledger.balance_of("alice")        # 100 * UNIT + 10**13

    ledger.transfer("alice", "bob", 40 * UNIT)
    ledger.set_global_rate(4 * 10**10)  # only affects new locks

    pool.add_rewards(UNIT)
    pool.redeem("alice", MAX_AMOUNT)
"""

# Core types
from .core import (
    LedgerView,
    AccrualState,
    HolderRecord,
    PrincipalChange,
    RecordUpdate,
    AllowanceChange,
    RateUpdate,
    Notification,
    PendingOperation,
    Receipt,
    build_operation,
    LedgerError,
    ZeroAmount,
    InsufficientBalance,
    InsufficientAllowance,
    RateCanOnlyDecrease,
    ClockRegression,
    PayoutFailed,
    StaleOperation,
    NotificationFailed,
    UNIT,
    MAX_AMOUNT,
    DEFAULT_INTEREST_RATE,
    OP_MINT, OP_BURN, OP_TRANSFER, OP_TRANSFER_FROM, OP_APPROVE, OP_SETTLE, OP_SET_GLOBAL_RATE,
    REASON_INTEREST, REASON_MINT, REASON_BURN, REASON_TRANSFER,
    EVENT_RATE_CHANGED, EVENT_INTEREST_MINTED, EVENT_MINT, EVENT_BURN,
    EVENT_TRANSFER, EVENT_APPROVAL, EVENT_DEPOSIT, EVENT_REDEEM,
)

# Base ledger
from .principal import PrincipalBook

# Accrual engine
from .accrual import (
    calculate_interest_multiplier,
    calculate_live_balance,
    calculate_pending_interest,
    compute_balance_of,
    compute_pending_interest,
)

# Settlement protocol
from .settlement import (
    SettlementResult,
    calculate_settlement,
    settle_holder,
    compute_settlement,
)

# Rate directory
from .rates import (
    validate_rate_decrease,
    compute_set_global_rate,
    lock_rate_for_holder,
    inherit_rate_on_transfer_in,
    get_user_interest_rate,
)

# Mint / burn / transfer
from .operations import (
    resolve_amount,
    compute_mint,
    compute_burn,
    compute_transfer,
    compute_transfer_from,
    compute_approve,
)

# Ledger and pool
from .ledger import InterestLedger
from .pool import Pool, PoolReceipt

__all__ = [
    # Core
    'LedgerView', 'AccrualState', 'HolderRecord', 'PrincipalChange', 'RecordUpdate',
    'AllowanceChange', 'RateUpdate', 'Notification', 'PendingOperation', 'Receipt',
    'build_operation',
    'LedgerError', 'ZeroAmount', 'InsufficientBalance', 'InsufficientAllowance',
    'RateCanOnlyDecrease', 'ClockRegression', 'PayoutFailed', 'StaleOperation', 'NotificationFailed',
    'UNIT', 'MAX_AMOUNT', 'DEFAULT_INTEREST_RATE',
    'OP_MINT', 'OP_BURN', 'OP_TRANSFER', 'OP_TRANSFER_FROM', 'OP_APPROVE', 'OP_SETTLE',
    'OP_SET_GLOBAL_RATE',
    'REASON_INTEREST', 'REASON_MINT', 'REASON_BURN', 'REASON_TRANSFER',
    'EVENT_RATE_CHANGED', 'EVENT_INTEREST_MINTED', 'EVENT_MINT', 'EVENT_BURN',
    'EVENT_TRANSFER', 'EVENT_APPROVAL', 'EVENT_DEPOSIT', 'EVENT_REDEEM',
    # Base ledger
    'PrincipalBook',
    # Accrual
    'calculate_interest_multiplier', 'calculate_live_balance', 'calculate_pending_interest',
    'compute_balance_of', 'compute_pending_interest',
    # Settlement
    'SettlementResult', 'calculate_settlement', 'settle_holder', 'compute_settlement',
    # Rates
    'validate_rate_decrease', 'compute_set_global_rate', 'lock_rate_for_holder',
    'inherit_rate_on_transfer_in', 'get_user_interest_rate',
    # Operations
    'resolve_amount', 'compute_mint', 'compute_burn', 'compute_transfer',
    'compute_transfer_from', 'compute_approve',
    # Ledger and pool
    'InterestLedger', 'Pool', 'PoolReceipt',
]

__version__ = '1.0.0'
