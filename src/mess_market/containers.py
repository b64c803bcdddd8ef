"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from mess_market.adapters.mess_client import HttpxMessClient, MessClient
from mess_market.adapters.supabase_audit_repository import SupabaseAuditRepository
from mess_market.adapters.supabase_bid_repository import SupabaseBidRepository
from mess_market.adapters.supabase_listing_repository import (
    SupabaseListingRepository,
)
from mess_market.adapters.supabase_notification_repository import (
    SupabaseNotificationRepository,
)
from mess_market.adapters.supabase_transaction_repository import (
    SupabasePurchaseRepository,
    SupabaseTransactionRepository,
)
from mess_market.adapters.supabase_user_repository import SupabaseUserRepository
from mess_market.config import Settings
from mess_market.services.admin import AdminService
from mess_market.services.audit import AuditService
from mess_market.services.bids import BidService
from mess_market.services.listings import ListingService
from mess_market.services.notifications import NotificationService
from mess_market.services.purchases import PurchaseService
from mess_market.services.settlement import SettlementService
from mess_market.services.sweep import ExpirySweep
from mess_market.services.users import UserService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    mess_client: MessClient
    user_service: UserService
    notification_service: NotificationService
    listing_service: ListingService
    bid_service: BidService
    settlement_service: SettlementService
    purchase_service: PurchaseService
    expiry_sweep: ExpirySweep
    admin_service: AdminService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    timezone_name = resolved_settings.market_timezone
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    listing_repository = SupabaseListingRepository(supabase_client)
    bid_repository = SupabaseBidRepository(supabase_client)
    transaction_repository = SupabaseTransactionRepository(supabase_client)
    purchase_repository = SupabasePurchaseRepository(supabase_client)
    notification_repository = SupabaseNotificationRepository(supabase_client)
    user_repository = SupabaseUserRepository(supabase_client)
    audit_repository = SupabaseAuditRepository(supabase_client)
    mess_client = HttpxMessClient.create(
        base_url=resolved_settings.mess_api_base_url,
        login_url=resolved_settings.mess_login_url,
    )
    user_service = UserService(user_repository)
    notification_service = NotificationService(notification_repository)
    listing_service = ListingService(
        repository=listing_repository,
        bid_repository=bid_repository,
        transaction_repository=transaction_repository,
        user_service=user_service,
        notification_service=notification_service,
        mess_client=mess_client,
        timezone_name=timezone_name,
    )
    bid_service = BidService(
        repository=bid_repository,
        listing_repository=listing_repository,
        user_service=user_service,
        notification_service=notification_service,
        timezone_name=timezone_name,
    )
    settlement_service = SettlementService(
        listing_repository=listing_repository,
        bid_repository=bid_repository,
        transaction_repository=transaction_repository,
        purchase_repository=purchase_repository,
        user_service=user_service,
        notification_service=notification_service,
        mess_client=mess_client,
        timezone_name=timezone_name,
    )
    purchase_service = PurchaseService(
        transaction_repository=transaction_repository,
        purchase_repository=purchase_repository,
        user_service=user_service,
        timezone_name=timezone_name,
    )
    expiry_sweep = ExpirySweep(
        listing_repository=listing_repository,
        bid_repository=bid_repository,
        notification_service=notification_service,
        timezone_name=timezone_name,
        batch_size=resolved_settings.sweep_batch_size,
    )
    admin_service = AdminService(
        sweep=expiry_sweep,
        settlement_service=settlement_service,
        listing_repository=listing_repository,
        bid_repository=bid_repository,
        audit_service=AuditService(audit_repository, timezone_name=timezone_name),
    )

    async def close_resources() -> None:
        await mess_client.close()

    return AppContainer(
        settings=resolved_settings,
        mess_client=mess_client,
        user_service=user_service,
        notification_service=notification_service,
        listing_service=listing_service,
        bid_service=bid_service,
        settlement_service=settlement_service,
        purchase_service=purchase_service,
        expiry_sweep=expiry_sweep,
        admin_service=admin_service,
        close_resources=close_resources,
    )
