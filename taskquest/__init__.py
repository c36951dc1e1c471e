"""
TaskQuest: a gamified task tracker.

- app: ``create_app`` factory for the REST API
- progression, constants: dependency-free game rules and vocabulary
- client: HTTP client, session state and view models for front ends
"""
