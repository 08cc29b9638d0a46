"""Station scorers: turn each mini-game's raw signals into a ledger score.

Kept apart from the engine so the engine stays independent of how any one
mini-game is played.
"""
