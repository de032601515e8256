"""
Pieces shared by the user and product services: cache gateway, error
taxonomy, request principal, gateway error handling and logging.
"""
