"""
Ordered field extractors

Models name the same field in several ways (``poNumber``,
``purchaseOrderNumber``, ``po_number``; ``supplier.name`` or a bare
``vendor`` string). Each header field is read through a list of small
extractor functions tried in priority order; the first non-empty result
wins.
"""

from typing import Any, Callable, Dict, List, Optional, Sequence

Extractor = Callable[[Dict[str, Any]], Any]


def path(*keys: str) -> Extractor:
    """Extractor reading a nested key path from the reply dict"""
    def extract(data: Dict[str, Any]) -> Any:
        value: Any = data
        for key in keys:
            if not isinstance(value, dict):
                return None
            value = value.get(key)
        return value
    extract.__name__ = f"path({'.'.join(keys)})"
    extract.keys = keys
    return extract


def is_present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, dict)):
        return bool(value)
    return True


def first_present(extractors: Sequence[Extractor], data: Dict[str, Any]) -> Any:
    """Value of the first extractor returning a non-empty result"""
    for extractor in extractors:
        value = extractor(data)
        if is_present(value):
            return value
    return None


def _string_supplier(*keys: str) -> Extractor:
    """Supplier given as a bare string under the key path"""
    inner = path(*keys)

    def extract(data: Dict[str, Any]) -> Any:
        value = inner(data)
        return value if isinstance(value, str) else None
    extract.keys = keys
    return extract


PO_NUMBER: List[Extractor] = [
    path('extractedData', 'poNumber'),
    path('extractedData', 'purchaseOrderNumber'),
    path('extractedData', 'po_number'),
    path('extractedData', 'header', 'poNumber'),
    path('poNumber'),
    path('purchaseOrderNumber'),
    path('po_number'),
]

SUPPLIER_NAME: List[Extractor] = [
    path('extractedData', 'supplier', 'name'),
    _string_supplier('extractedData', 'supplier'),
    path('extractedData', 'vendor', 'name'),
    _string_supplier('extractedData', 'vendor'),
    path('extractedData', 'supplierName'),
    path('extractedData', 'vendorName'),
    path('supplier', 'name'),
    _string_supplier('supplier'),
    path('supplierName'),
    path('vendorName'),
]

SUPPLIER_EMAIL: List[Extractor] = [
    path('extractedData', 'supplier', 'email'),
    path('extractedData', 'supplier', 'contact', 'email'),
    path('extractedData', 'vendor', 'email'),
    path('supplier', 'email'),
]

SUPPLIER_PHONE: List[Extractor] = [
    path('extractedData', 'supplier', 'phone'),
    path('extractedData', 'supplier', 'contact', 'phone'),
    path('extractedData', 'vendor', 'phone'),
    path('supplier', 'phone'),
]

SUPPLIER_ADDRESS: List[Extractor] = [
    path('extractedData', 'supplier', 'address'),
    path('extractedData', 'vendor', 'address'),
    path('supplier', 'address'),
]

ORDER_DATE: List[Extractor] = [
    path('extractedData', 'dates', 'orderDate'),
    path('extractedData', 'dates', 'poDate'),
    path('extractedData', 'dates', 'issueDate'),
    path('extractedData', 'orderDate'),
    path('dates', 'orderDate'),
    path('orderDate'),
]

DELIVERY_DATE: List[Extractor] = [
    path('extractedData', 'dates', 'deliveryDate'),
    path('extractedData', 'dates', 'expectedDelivery'),
    path('extractedData', 'dates', 'expectedDeliveryDate'),
    path('extractedData', 'deliveryDate'),
    path('dates', 'deliveryDate'),
    path('deliveryDate'),
]

SUBTOTAL: List[Extractor] = [
    path('extractedData', 'totals', 'subtotal'),
    path('totals', 'subtotal'),
]

TAX: List[Extractor] = [
    path('extractedData', 'totals', 'tax'),
    path('extractedData', 'totals', 'taxAmount'),
    path('totals', 'tax'),
]

SHIPPING: List[Extractor] = [
    path('extractedData', 'totals', 'shipping'),
    path('extractedData', 'totals', 'shippingAmount'),
    path('totals', 'shipping'),
]

TOTAL: List[Extractor] = [
    path('extractedData', 'totals', 'total'),
    path('extractedData', 'totals', 'grandTotal'),
    path('extractedData', 'totals', 'amount'),
    path('extractedData', 'totalAmount'),
    path('totals', 'total'),
    path('totals', 'grandTotal'),
    path('totalAmount'),
]

NOTES: List[Extractor] = [
    path('extractedData', 'notes'),
    path('extractedData', 'specialInstructions'),
    path('notes'),
]

LINE_ITEMS: List[Extractor] = [
    path('extractedData', 'lineItems'),
    path('lineItems'),
]

LEGACY_ITEMS: List[Extractor] = [
    path('extractedData', 'items'),
    path('items'),
]

CONFIDENCE: List[Extractor] = [
    path('confidence'),
    path('extractedData', 'confidence'),
]

FIELD_CONFIDENCES: List[Extractor] = [
    path('fieldConfidences'),
    path('field_confidences'),
]

QUALITY_INDICATORS: List[Extractor] = [
    path('qualityIndicators'),
    path('quality_indicators'),
]

LINE_ITEM_FIELDS: Dict[str, List[str]] = {
    'productCode': ['productCode', 'sku', 'itemCode', 'partNumber', 'product_code'],
    'description': ['description', 'name', 'productName', 'item'],
    'quantity': ['quantity', 'qty', 'quantityOrdered'],
    'unitPrice': ['unitPrice', 'price', 'unit_price', 'unitCost'],
    'total': ['total', 'amount', 'lineTotal', 'extendedPrice'],
}


def line_item_fields(row: Dict[str, Any]) -> Dict[str, Optional[Any]]:
    """Canonical line-item fields from a row using the first present alias"""
    return {
        field_name: first_present([path(alias) for alias in aliases], row)
        for field_name, aliases in LINE_ITEM_FIELDS.items()
    }


EXTRACTION_FIELDS: List[List[Extractor]] = [
    PO_NUMBER, SUPPLIER_NAME, SUPPLIER_EMAIL, SUPPLIER_PHONE, SUPPLIER_ADDRESS,
    ORDER_DATE, DELIVERY_DATE, SUBTOTAL, TAX, SHIPPING, TOTAL, NOTES,
    LINE_ITEMS, LEGACY_ITEMS,
]

# Top-level keys that mark a reply as an extraction (empty values included)
EXTRACTION_KEYS = frozenset(
    extractor.keys[0] for extractors in EXTRACTION_FIELDS for extractor in extractors
) | {'issues'}


def has_extraction_fields(data: Dict[str, Any]) -> bool:
    """True when the reply carries extractedData or any known header, line-item or issues key"""
    if isinstance(data.get('extractedData'), dict):
        return True
    return any(key in data for key in EXTRACTION_KEYS if key != 'extractedData')
