"""
Dataverse table names, columns and record mapping shared by the rules-data adapters.
"""

from decimal import Decimal
from typing import Any, Optional

from order_rules.models.rules_data import CustomerInfo, ProductInfo

ACCOUNTS = 'accounts'
PRODUCTS = 'products'
ORDERS = 'new_orders'

ACCOUNT_ID = 'accountid'
PRODUCT_ID = 'productid'
ORDER_ID = 'new_orderid'

CUSTOMER_COLUMNS = ['name', 'statecode', 'creditlimit']
PRODUCT_COLUMNS = ['name', 'statecode', 'price', 'quantityonhand']
PRICE_COLUMNS = ['price']

ORDER_NUMBER = 'new_ordernumber'
ORDER_COLUMNS = [
    ORDER_ID,
    ORDER_NUMBER,
    '_new_customerid_value',
    'new_orderdate',
    'new_totalamount',
    '_new_productid_value',
    'new_quantity',
    'new_unitprice',
]


def to_decimal(value: Any) -> Optional[Decimal]:
    """Convert a JSON number (Money or Decimal column) to Decimal."""
    if value is None:
        return None
    return Decimal(str(value))


def to_customer_info(customer_id: str, record: dict[str, Any], active_statecode: int) -> CustomerInfo:
    return CustomerInfo(
        id=customer_id,
        name=record.get('name') or '',
        is_active=record.get('statecode') == active_statecode,
        credit_limit=to_decimal(record.get('creditlimit')) or Decimal('0'),
    )


def to_product_info(product_id: str, record: dict[str, Any], active_statecode: int, clamp_stock: bool) -> ProductInfo:
    """
    Map a product record.

    Args:
        product_id: Product id as requested
        record: Web API record
        active_statecode: statecode that marks an active product
        clamp_stock: Report negative quantity on hand as zero
    """
    quantity = to_decimal(record.get('quantityonhand')) or Decimal('0')
    if clamp_stock:
        quantity = max(Decimal('0'), quantity)

    return ProductInfo(
        id=product_id,
        name=record.get('name') or '',
        is_active=record.get('statecode') == active_statecode,
        price=to_decimal(record.get('price')) or Decimal('0'),
        stock_quantity=int(quantity),
    )
