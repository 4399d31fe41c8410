from .events import EventSession
from .venue import Space, Shed
from .bookings import Client, Booking
from .materials import MaterialStockItem, MaterialHistory, MaterialIssueRecord, MaterialDefaults
from .billing import ElectricItem, ElectricBill, ShedAllocation, ShedBill, Payment
from .accounting import AccountingTransaction
from .staff import BookingStaff
from .ticketing import Ride, TicketStock, TicketDistribution
from .auth import User, AuditLog
from .edits import EditRequest

__all__ = [
    'EventSession',
    'Space', 'Shed',
    'Client', 'Booking',
    'MaterialStockItem', 'MaterialHistory', 'MaterialIssueRecord', 'MaterialDefaults',
    'ElectricItem', 'ElectricBill', 'ShedAllocation', 'ShedBill', 'Payment',
    'AccountingTransaction',
    'BookingStaff',
    'Ride', 'TicketStock', 'TicketDistribution',
    'User', 'AuditLog',
    'EditRequest',
]
