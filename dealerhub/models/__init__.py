from dealerhub.models.base import Base  # noqa: F401

from dealerhub.models.user import User  # noqa: F401
from dealerhub.models.api_key import ApiKey  # noqa: F401
from dealerhub.models.dealership import Dealership  # noqa: F401
from dealerhub.models.partner_membership import PartnerMembership  # noqa: F401
from dealerhub.models.car_listing import CarListing  # noqa: F401
from dealerhub.models.pending_listing import PendingListing  # noqa: F401
from dealerhub.models.partner_listing import PartnerListing  # noqa: F401
from dealerhub.models.lead import Lead  # noqa: F401
from dealerhub.models.transaction import Transaction  # noqa: F401
from dealerhub.models.commission import Commission  # noqa: F401
from dealerhub.models.outbox import OutboxEvent  # noqa: F401
from dealerhub.models.audit_log import AuditLog  # noqa: F401
from dealerhub.models.idempotency import IdempotencyKey  # noqa: F401
from dealerhub.models.search_intent import SearchIntent  # noqa: F401
