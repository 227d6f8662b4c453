"""Checkout bounded context — restricted-product order compliance pipeline.

Validates the delivery address, verifies the customer's age, decides whether a
stake call is required, authorizes payment and commits the order together with
its write-once compliance snapshot.
"""

from protean.domain import Domain

from checkout.utils.logging import configure_logging, get_logger

# Configure logging for the application
configure_logging()

logger = get_logger(__name__)

# Domain Composition Root
checkout = Domain(name="checkout")
