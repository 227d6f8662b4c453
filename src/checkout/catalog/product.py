"""The slice of the catalog the checkout pipeline reads.

Products are maintained by the catalog service; checkout only reads price,
weight and the regulatory flags that drive state restrictions.
"""

from enum import Enum

from protean.fields import Boolean, Float, String

from checkout.domain import checkout


class FlavorType(Enum):
    TOBACCO = "TOBACCO"
    MENTHOL = "MENTHOL"
    FRUIT = "FRUIT"
    DESSERT = "DESSERT"
    OTHER = "OTHER"


@checkout.aggregate
class Product:
    sku = String(required=True, max_length=64, unique=True)
    name = String(required=True, max_length=255)
    price = Float(required=True, min_value=0.0)
    nicotine_mg = Float(default=0.0, min_value=0.0)
    net_weight_grams = Float(default=0.0, min_value=0.0)
    flavor_type = String(max_length=20, choices=FlavorType, default=FlavorType.TOBACCO.value)
    ca_utl_approved = Boolean(default=False)  # on California's unflavored tobacco list
    sensory_cooling = Boolean(default=False)
    active = Boolean(default=True)
