"""
Presence: who is in the room right now, and what happens when they come and go.
"""
