"""
                        Services Module

Business logic for the bowl kitchen. Every operation takes the
Database handle (or an open session) explicitly.

Services:
    - nutrition: pricing and nutrition arithmetic
    - catalog: ingredient catalog and customer directory
    - admission: semantic order validation
    - orders: order store
    - robots: robot registry and polling
    - assignment: order/robot matching
    - transitions: order status state machine
    - production_log: process-safe spreadsheet of finished orders
"""
