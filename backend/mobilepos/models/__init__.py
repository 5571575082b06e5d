from .catalog import Product, ProductImei, Offer
from .customers import Customer
from .invoices import Invoice, InvoiceLine, MixedPayment, EmiPlan, EmiInstallment, InvoiceSequence

__all__ = [
    'Product', 'ProductImei', 'Offer',
    'Customer',
    'Invoice', 'InvoiceLine', 'MixedPayment',
    'EmiPlan', 'EmiInstallment', 'InvoiceSequence',
]
