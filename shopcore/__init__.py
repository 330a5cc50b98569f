"""
shopcore - order validation core for the storefront backend

Pure domain logic, no I/O:
- Catalog shapes (simple vs variated products) and quantity-tiered pricing
- Stock/price resolution per line item
- Store tax and delivery policy
- Whole-order validation with aggregated field errors
"""

from shopcore.core.config import ShopConfig, get_config, set_config
from shopcore.validation import OrderValidator, ValidationOutcome

__all__ = [
    'ShopConfig',
    'get_config',
    'set_config',
    'OrderValidator',
    'ValidationOutcome',
]

__version__ = '0.1.0'
