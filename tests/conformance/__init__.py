"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the marketplace.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. atomicity.py - Every marketplace call is all-or-nothing
2. commission.py - seller_proceeds + commission == price, commission rounds down
3. conservation.py - Currency and asset supply never change through trading
4. single_listing.py - At most one active listing per asset instance

These tests use hypothesis for property-based testing.
"""
