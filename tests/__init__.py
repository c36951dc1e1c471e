"""
Test suite for the Task Manager application.

This package contains:
- api/: REST API tests using pytest and requests
- ui/: Browser-based UI tests using Playwright
- mocks/: Examples of mocking external services
- integration/: Combined API and UI tests
"""
