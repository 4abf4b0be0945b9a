"""
API Routers - Organized endpoint handlers for the Grouping API.

- grouping: Runs, moves, lifecycle transitions, groups, violations and reports
"""
