"""
Haven collection names.

Collections owned by the check-in engine plus the read-only collections
maintained by other parts of the platform.
"""

# Owned by the check-in engine
MOOD_ENTRIES = "moodentries"
USER_STATS = "userstats"
USER_ACHIEVEMENTS = "userachievements"
NOTIFICATIONS = "notifications"
NOTIFICATION_COUNTERS = "notificationcounters"
LOW_MOOD_ALERTS = "lowmoodalerts"
NOTIFICATION_RETRIES = "notificationretries"

# Read-only collaborators
USERS = "users"
FRIENDSHIPS = "friendships"
FORUM_POSTS = "forumposts"
MESSAGES = "messages"
