"""Scheduling logic: recurrence expansion and upcoming-event notifications."""
