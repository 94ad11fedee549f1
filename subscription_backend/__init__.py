"""Subscription backend package.

Recurring subscription billing: trial/active lifecycle, renewal scheduling,
discount math and charging a card vault gateway on a billing cycle.
"""

__version__ = '0.4.0'
