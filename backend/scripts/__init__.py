"""
Backend Scripts Module

Available scripts:
    - seed_notifications.py: Creates the default notification events and configs

Usage:
    python -m scripts.seed_notifications
"""
