"""Upload Reminder Engine - document upload pattern learning and reminders"""
