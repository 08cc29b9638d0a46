"""Session and scoring engine.

Pure scoring formulas, key fragments, tiers and the leaderboard projection
live next to the store-backed run registry and station result ledger. HTTP
routes and socket handlers import from here and never touch the tables
directly.
"""
