"""
Cardcord - Surprise Birthday Card Coordination for Discord

Cardcord watches stored birthdays and, a configurable number of days ahead,
opens a private channel in every shared guild where members can plan a group
card without the birthday person seeing it. On the day itself the card is
revealed publicly, a temporary role is handed out and the channel goes away.

Core Components:

- **Birthday Store**: Month/day records per user, scanned for threshold matches
- **Coordination Lifecycle**: Channel creation, self-healing lookup and reveal,
  with state inferred from the channel that exists in each guild
- **Event Queue**: Persisted one-shot jobs (role removal, reminders, channel
  clean-up) retried on the next poll until they succeed
- **Scheduler Driver**: Daily and polling entry points, run either by the bot's
  own loops or by ``cardcord-scheduler`` from an external timer

Usage:
    from cardcord.main import main
    main()  # Starts the bot
"""
