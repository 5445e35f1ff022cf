"""
Discord cogs for the long-running bot.

- **listener/events_listener.py**: Presence and command tree sync on connect.
- **listener/scheduler_cog.py**: Daily scans and the scheduled event poll.
- **commands/birthday_cmds.py**: ``/set-birthday`` and ``/get-birthday``.
"""
