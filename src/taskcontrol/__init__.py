"""taskcontrol - stop, resume and time-plan tasks under a controllable CPU scheduler."""

__version__ = "0.1.0"
