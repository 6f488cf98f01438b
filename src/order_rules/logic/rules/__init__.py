"""
Independent order validation rules.

Each rule checks one concern of a CreateOrderCommand and returns the list of
failures it found. Rules never raise for a broken business rule.
"""

from order_rules.logic.rules.customer_rules import validate_customer
from order_rules.logic.rules.line_rules import validate_line, validate_lines
from order_rules.logic.rules.order_date_rules import validate_order_date
from order_rules.logic.rules.order_number_rules import validate_order_number
from order_rules.logic.rules.total_rules import validate_total_amount

__all__ = [
    "validate_customer",
    "validate_line",
    "validate_lines",
    "validate_order_date",
    "validate_order_number",
    "validate_total_amount",
]
