from .directory import User, Product
from .devices import Device, AllocationRecord
from .sales import Sale, Commission, ReceiptSequence

__all__ = [
    'User', 'Product',
    'Device', 'AllocationRecord',
    'Sale', 'Commission', 'ReceiptSequence',
]
