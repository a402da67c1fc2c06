"""
Components layer.

Request and response contracts shared by the HTTP routes and the query
bridge services (see `contracts.py`).
"""
