"""
Plain data types shared across Cardcord.

- **discord_datatypes.py**: ``UserID``/``GuildID`` snowflake wrappers.
- **birthday_datatypes.py**: ``MonthDay`` and ``BirthdayRecord``.
- **event_datatypes.py**: ``EventKind`` and ``ScheduledEvent``.
- **outcome_datatypes.py**: ``GuildOutcome``, ``ScanReport`` and ``PollResult``.
"""
