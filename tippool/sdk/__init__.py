"""Tip Pool SDK - Core functionality for pooled tips and payouts."""

from .config import (
    get_config_dir,
    get_settings_path,
    load_settings,
    save_settings,
    get_setting,
    set_setting,
    get_data_path,
    get_default_team,
    get_pool_defaults_path,
    load_pool_defaults,
    save_pool_defaults,
    load_pool_settings,
    parse_pool_settings,
    update_pool_settings,
)

from .errors import (
    TipPoolError,
    ValidationError,
    StateConflictError,
    PersistenceError,
    ConfigurationError,
)

from .schemas import (
    ClosingTime,
    PeriodDuration,
    PoolSettings,
)

from .models import (
    HourRegistration,
    PayoutData,
    PayoutDistributionItem,
    Period,
    PeriodStatus,
    TeamMember,
    TeamState,
    TipEntry,
)

from .rounding import RoundingStep, round_down
from .schedule import compute_auto_close_date, generate_period_name, format_closing_time
from .distribution import MemberShare, distribute, average_tip_per_hour
from .balance import MemberBalance, reconcile, build_payout_items, apply_rounding

from .store import PoolStore, JsonPoolStore
from .session import TeamLocks, TeamSession
from .periods import AutoCloseHandle, PeriodLifecycleController
from .team import TeamRoster
from .payouts import PayoutSettlementController, SettlementPlan, plan_settlement
from .pool import TipPool

__all__ = [
    # Config
    "get_config_dir",
    "get_settings_path",
    "load_settings",
    "save_settings",
    "get_setting",
    "set_setting",
    "get_data_path",
    "get_default_team",
    "get_pool_defaults_path",
    "load_pool_defaults",
    "save_pool_defaults",
    "load_pool_settings",
    "parse_pool_settings",
    "update_pool_settings",
    # Errors
    "TipPoolError",
    "ValidationError",
    "StateConflictError",
    "PersistenceError",
    "ConfigurationError",
    # Settings schemas
    "ClosingTime",
    "PeriodDuration",
    "PoolSettings",
    # Records
    "HourRegistration",
    "PayoutData",
    "PayoutDistributionItem",
    "Period",
    "PeriodStatus",
    "TeamMember",
    "TeamState",
    "TipEntry",
    # Calculators
    "RoundingStep",
    "round_down",
    "compute_auto_close_date",
    "generate_period_name",
    "format_closing_time",
    "MemberShare",
    "distribute",
    "average_tip_per_hour",
    "MemberBalance",
    "reconcile",
    "build_payout_items",
    "apply_rounding",
    # Controllers
    "PoolStore",
    "JsonPoolStore",
    "TeamLocks",
    "TeamSession",
    "AutoCloseHandle",
    "PeriodLifecycleController",
    "TeamRoster",
    "PayoutSettlementController",
    "SettlementPlan",
    "plan_settlement",
    "TipPool",
]
