from .booking_queries import (
    get_booking,
    get_client_unpaid_bookings,
    update_booking_status,
    mark_booking_paid,
    set_payout_status,
    mark_booking_refunded,
    get_team_leader_paid_bookings,
    create_booking,
    assign_cleaner
)
from .transaction_queries import (
    create_transaction,
    complete_transaction,
    fail_transaction,
    get_booking_transactions,
    get_failed_payouts
)
from .user_queries import (
    get_user_by_phone,
    get_user_by_id,
    get_payout_account,
    get_admin_ids,
    create_notifications
)

__all__ = [
    # Booking queries
    'get_booking',
    'get_client_unpaid_bookings',
    'update_booking_status',
    'mark_booking_paid',
    'set_payout_status',
    'mark_booking_refunded',
    'get_team_leader_paid_bookings',
    'create_booking',
    'assign_cleaner',

    # Transaction journal queries
    'create_transaction',
    'complete_transaction',
    'fail_transaction',
    'get_booking_transactions',
    'get_failed_payouts',

    # User / cleaner profile queries
    'get_user_by_phone',
    'get_user_by_id',
    'get_payout_account',
    'get_admin_ids',
    'create_notifications'
]
