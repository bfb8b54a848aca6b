"""Rate limit storage adapters.

The limiter depends on a small get/put store abstraction so the same
sliding-window algorithm runs against Firestore in production and an
in-process dict in development and tests.
"""
