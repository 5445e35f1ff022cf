"""
Coordination of the surprise card inside Discord guilds.

- **channel_resolver.py**: Finds a subject's private channel by topic marker,
  then by name, and heals stale names and markers.
- **lifecycle.py**: Channel creation, reveal, and the handlers for deferred
  role removal, reminders and channel clean-up.
- **messages.py**: Text of the kickoff, reminder and celebration posts.
"""
