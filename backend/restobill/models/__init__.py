from .tenancy import Restaurant
from .orders import Order, OrderItem
from .subscriptions import Subscription, SubscriptionNotification, SubscriptionPayment
from .invoices import Invoice, InvoiceLine
from .transactions import Transaction

__all__ = [
    'Restaurant',
    'Order', 'OrderItem',
    'Subscription', 'SubscriptionNotification', 'SubscriptionPayment',
    'Invoice', 'InvoiceLine',
    'Transaction',
]
