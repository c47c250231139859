"""
Haven check-in engine.

Daily mood check-ins, streaks, achievements and Support Circle
notifications for the Haven mental-health support platform.
"""
