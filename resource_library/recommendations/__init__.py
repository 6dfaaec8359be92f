"""
Resource recommendation engine.

Responsibilities:
- Rank resources globally by review quality, backfilling with the newest ones.
- Derive a user's favorite subject, type and grade from their reviews and
  recommend matching resources, relaxing the filters when matches run short.
- Score unseen resources with user- and item-based collaborative filtering.
"""
