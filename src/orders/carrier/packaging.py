"""Package planning: turns an order's item snapshots into one shippable package.

Items are stacked in a single box: the footprint is the largest item's
length and width, height and weight accumulate per unit. Missing item
measurements fall back to a typical framed-artwork size.
"""

from orders.carrier.port import Address, Package, ShipmentRequest

DEFAULT_ITEM_WEIGHT_LB = 5.0
DEFAULT_ITEM_LENGTH_IN = 24.0
DEFAULT_ITEM_WIDTH_IN = 24.0
DEFAULT_ITEM_HEIGHT_IN = 4.0

_KG_TO_LB = 2.20462
_CM_TO_IN = 1 / 2.54


def _weight_in_lb(item) -> float:
    if not item.weight:
        return DEFAULT_ITEM_WEIGHT_LB
    if (item.weight_unit or "LB").upper() == "KG":
        return item.weight * _KG_TO_LB
    return item.weight


def _dimensions_in_inches(item) -> tuple[float, float, float]:
    dims = item.dimensions
    if dims is None:
        return DEFAULT_ITEM_LENGTH_IN, DEFAULT_ITEM_WIDTH_IN, DEFAULT_ITEM_HEIGHT_IN
    factor = _CM_TO_IN if (dims.unit or "IN").upper() == "CM" else 1.0
    return (
        (dims.length or 0.0) * factor or DEFAULT_ITEM_LENGTH_IN,
        (dims.width or 0.0) * factor or DEFAULT_ITEM_WIDTH_IN,
        (dims.height or 0.0) * factor or DEFAULT_ITEM_HEIGHT_IN,
    )


def build_package(items) -> Package:
    """Aggregate order items into a single package (no multi-package splitting)."""
    total_weight = 0.0
    max_length = 0.0
    max_width = 0.0
    total_height = 0.0
    insured_value = 0.0

    for item in items:
        quantity = item.quantity or 1
        length, width, height = _dimensions_in_inches(item)
        total_weight += _weight_in_lb(item) * quantity
        max_length = max(max_length, length)
        max_width = max(max_width, width)
        total_height += height * quantity
        insured_value += (item.unit_price or 0.0) * quantity

    return Package(
        weight=round(total_weight, 2),
        weight_unit="LB",
        length=round(max_length, 2),
        width=round(max_width, 2),
        height=round(total_height, 2),
        dimension_unit="IN",
        insured_value=round(insured_value, 2),
    )


def build_shipment_request(order, origin: Address, ship_date: str) -> ShipmentRequest:
    address = order.shipping_address
    destination = Address(
        full_name=address.full_name,
        phone_number=address.phone_number,
        address_line1=address.address_line1,
        address_line2=address.address_line2,
        city=address.city,
        state=address.state,
        zip_code=(address.zip_code or "").replace(" ", ""),
        country=address.country or "US",
        residential=address.residential if address.residential is not None else True,
    )
    return ShipmentRequest(
        reference=order.order_number,
        origin=origin,
        destination=destination,
        package=build_package(order.items or []),
        ship_date=ship_date,
    )
