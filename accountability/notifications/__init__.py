"""Delivery queue, worker and transport for reminder emails"""
