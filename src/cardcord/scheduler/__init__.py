"""
Time-driven parts of Cardcord.

- **date_matcher.py**: Pure month/day threshold matching.
- **event_queue.py**: Persisted one-shot events with retry on the next poll.
- **scheduler_driver.py**: Daily threshold scan, reveal scan, queue poll and
  orphan report, selectable by name for the external trigger.
"""
