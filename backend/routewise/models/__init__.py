from .tenancy import Tenant, TenantParameters, ExchangeRate
from .fleet import Vehicle, Driver, Client
from .quotations import Quotation
from .itineraries import Itinerary
from .invoices import Invoice, InvoicePayment
from .advances import ExpenseAdvance
from .documents import DocumentSequence, DocumentEvent
from .communications import ScheduledReminder, Notification

__all__ = [
    'Tenant', 'TenantParameters', 'ExchangeRate',
    'Vehicle', 'Driver', 'Client',
    'Quotation',
    'Itinerary',
    'Invoice', 'InvoicePayment',
    'ExpenseAdvance',
    'DocumentSequence', 'DocumentEvent',
    'ScheduledReminder', 'Notification',
]
