"""Reminder scheduling, recurrence and the due-reminder processor"""
