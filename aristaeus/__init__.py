"""
                Aristaeus Bowl Kitchen

Ordering backend for a robot-assisted food-bowl kitchen: bowl pricing
and admission, order/robot assignment and the order status machine.

Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
