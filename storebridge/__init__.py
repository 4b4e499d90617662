"""
Store Bridge

A schema-mapping and reconciliation toolkit for migrating commerce data
between WooCommerce and Shopify stores.

Supports:
- Products, customers, orders, collections, coupons, reviews, pages and blog posts
- Canonical normalization in both directions
- Pre-write validation with complete error reporting
- Gap, orphan and inventory reconciliation reports
- Sequential migration jobs with per-item results
"""

__version__ = "0.1.0"
