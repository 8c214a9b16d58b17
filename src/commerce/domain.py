"""Commerce domain: the marketplace transaction core.

Carts, orders, payments, the stock mirror of the catalog and review
helpfulness votes all live in one domain so that every multi-record
mutation commits inside a single Unit of Work.
"""

from protean.domain import Domain

from commerce.utils.logging import configure_logging, get_logger

configure_logging(log_file_prefix="commerce")

logger = get_logger(__name__)

commerce = Domain(name="commerce")
