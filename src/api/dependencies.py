"""
FastAPI dependencies shared by the routers.
"""

from fastapi import Request


def get_manager(request: Request):
    """The DashboardManager attached to the running app"""
    return request.app.state.manager
