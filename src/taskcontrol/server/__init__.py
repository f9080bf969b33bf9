"""REST control server for the scheduler.

Usage:
    from taskcontrol.server import create_app

    app = create_app()
"""

from taskcontrol.server.app import create_app, get_controller
from taskcontrol.server.control import SchedulerController

__all__ = ["SchedulerController", "create_app", "get_controller"]
