"""
Campaign Cost Ledger

Allocates field-campaign costs (vehicles, lodging, meals, clothing,
credentials and special items) to areas and weeks from canvasser
attendance, and keeps a cost ledger consistent with that allocation.

DESIGN PRINCIPLES:
1. The ledger always converges to the configuration and attendance
2. Billed bookings are never rewritten, only corrected
3. Fail early: nothing is written unless every input could be read
4. One failing rule never blocks the others
5. Every mutation is auditable
"""

__version__ = "1.0.0"
