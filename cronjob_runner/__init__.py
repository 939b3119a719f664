"""Run a Job from a CronJob and wait for the completion."""

__version__ = "1.0.0"
