"""
Pure validation helpers for prices and catalog input.

These functions never touch the database; services call them before any
write and raise ValidationError with the returned message.
"""
import re
from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional

CURRENCY_PATTERN = re.compile(r'^[A-Z]{3}$')
SKU_PATTERN = re.compile(r'^[A-Za-z0-9_-]+$')

MAX_DECIMALS = 2
SKU_MAX_LENGTH = 100
NAME_MAX_LENGTH = 255
UNIT_MAX_LENGTH = 50

PRODUCT_TYPES = ('product', 'service')
RATE_TYPES = ('per_hour', 'per_project', 'fixed', 'negotiable')
DEFAULT_CURRENCY = 'USD'


def to_decimal(value) -> Optional[Decimal]:
    """Convert numbers or numeric strings to Decimal; None when impossible."""
    if value is None or isinstance(value, bool):
        return None
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not result.is_finite():
        return None
    return result


def decimal_places(value) -> int:
    number = to_decimal(value)
    if number is None:
        return 0
    exponent = number.normalize().as_tuple().exponent
    return -exponent if exponent < 0 else 0


def is_valid_price(value) -> bool:
    """A price is valid when strictly positive with at most two decimals."""
    number = to_decimal(value)
    if number is None:
        return False
    return number > 0 and decimal_places(number) <= MAX_DECIMALS


def is_valid_discount(value) -> bool:
    number = to_decimal(value)
    if number is None:
        return False
    return Decimal('0') <= number <= Decimal('100') and decimal_places(number) <= MAX_DECIMALS


def is_valid_currency(code) -> bool:
    return isinstance(code, str) and bool(CURRENCY_PATTERN.match(code))


def is_valid_date_range(effective_from, effective_until) -> bool:
    if effective_from is None or effective_until is None:
        return True
    return effective_from <= effective_until


def validate_price_or_discount(price, discount_percentage) -> bool:
    """Exactly one of price or discount percentage must be supplied."""
    return (price is None) != (discount_percentage is None)


def calculate_price_from_discount(base_price, discount_percentage) -> Decimal:
    """Exact discounted price; rounding to cents happens when rendering."""
    base = Decimal(str(base_price))
    discount = Decimal(str(discount_percentage))
    return base * (Decimal('1') - discount / Decimal('100'))


def calculate_discount_from_price(base_price, price) -> Decimal:
    base = Decimal(str(base_price))
    if base <= 0:
        raise ValueError("Base price must be positive")
    value = Decimal(str(price))
    return (base - value) / base * Decimal('100')


def find_duplicates(values: Iterable) -> list:
    """Return the values that appear more than once, in first-seen order."""
    seen = set()
    duplicates = []
    for value in values:
        if value in seen and value not in duplicates:
            duplicates.append(value)
        seen.add(value)
    return duplicates


def validate_price_fields(price=None, discount_percentage=None, currency=None,
                          effective_from=None, effective_until=None,
                          require_exactly_one=True) -> list:
    """
    Check the price-write rules and return a list of error messages.
    
    An empty list means the input is acceptable.
    """
    errors = []
    if require_exactly_one and not validate_price_or_discount(price, discount_percentage):
        errors.append("Provide either a price or a discount percentage, not both")
    if price is not None and not is_valid_price(price):
        errors.append("Price must be greater than 0 with at most 2 decimal places")
    if discount_percentage is not None and not is_valid_discount(discount_percentage):
        errors.append("Discount percentage must be between 0 and 100")
    if currency is not None and not is_valid_currency(currency):
        errors.append("Currency must be a 3-letter uppercase code")
    if not is_valid_date_range(effective_from, effective_until):
        errors.append("effective_from must be on or before effective_until")
    return errors


def is_valid_sku(sku) -> bool:
    return (
        isinstance(sku, str)
        and 0 < len(sku) <= SKU_MAX_LENGTH
        and bool(SKU_PATTERN.match(sku))
    )


def is_valid_name(name) -> bool:
    return isinstance(name, str) and 0 < len(name.strip()) <= NAME_MAX_LENGTH


def is_valid_unit(unit) -> bool:
    return isinstance(unit, str) and 0 < len(unit.strip()) <= UNIT_MAX_LENGTH


def is_valid_rate(rate) -> bool:
    """Service rates are optional; when present they must be positive."""
    if rate is None:
        return True
    number = to_decimal(rate)
    return number is not None and number > 0


def is_valid_rate_type(rate_type) -> bool:
    return rate_type is None or rate_type in RATE_TYPES


def can_assign_category(product_type, category_id, service_category_id) -> bool:
    """
    Products may only carry a product category, services only a service
    category, and never both.
    """
    if category_id is not None and service_category_id is not None:
        return False
    if product_type == 'product':
        return service_category_id is None
    if product_type == 'service':
        return category_id is None
    return False


def validate_product_fields(data: dict, partial: bool = False) -> list:
    """Return error messages for product create/update payloads."""
    errors = []

    def present(key):
        return key in data and data[key] is not None

    if present('sku') or not partial:
        if not is_valid_sku(data.get('sku')):
            errors.append("SKU must be 1-100 characters of letters, digits, '-' or '_'")
    if present('name') or not partial:
        if not is_valid_name(data.get('name')):
            errors.append("Name is required and must be at most 255 characters")
    if present('unit') or not partial:
        if not is_valid_unit(data.get('unit')):
            errors.append("Unit is required and must be at most 50 characters")
    product_type = data.get('type', 'product')
    if product_type not in PRODUCT_TYPES:
        errors.append("Type must be 'product' or 'service'")
    if not is_valid_rate(data.get('rate_per_hour')):
        errors.append("Rate per hour must be greater than 0")
    if not is_valid_rate_type(data.get('rate_type')):
        errors.append(f"Rate type must be one of: {', '.join(RATE_TYPES)}")
    if data.get('category_id') is not None and data.get('service_category_id') is not None:
        errors.append("A product cannot have both a category and a service category")
    elif product_type in PRODUCT_TYPES and not can_assign_category(
            product_type, data.get('category_id'), data.get('service_category_id')):
        if product_type == 'product':
            errors.append("Products can only be assigned a product category")
        else:
            errors.append("Services can only be assigned a service category")
    return errors
