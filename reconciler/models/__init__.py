# Models package: import all models here so Alembic can discover them.

from reconciler.models.profile import Profile  # noqa: F401
from reconciler.models.order import Order  # noqa: F401
from reconciler.models.billing import Subscription, Purchase  # noqa: F401
from reconciler.models.inventory import (  # noqa: F401
    InventoryReservation,
    InventoryTransaction,
    ProductVariant,
)
from reconciler.models.stripe_event import StripeEvent  # noqa: F401
from reconciler.models.webhook_failure import WebhookFailure  # noqa: F401
from reconciler.models.email_queue import EmailQueue  # noqa: F401
from reconciler.models.referral import Referral, Discount  # noqa: F401
from reconciler.models.audit import AuditEvent  # noqa: F401
