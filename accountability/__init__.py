"""
Accountability reminders package

Reminder scheduling and recurrence, plus the notification queue that
delivers reminder emails (durable Celery/Redis or immediate fallback).
"""
