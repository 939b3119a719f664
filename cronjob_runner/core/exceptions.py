"""
Exceptions raised by the runner
"""


class RunnerError(Exception):
    """Base class of the errors raised by cronjob-runner"""


class JobFailedError(RunnerError):
    """The Job has failed (Failed condition), not an error of the runner itself"""

    def __init__(self, namespace: str, name: str):
        self.namespace = namespace
        self.name = name
        super().__init__(f"job {namespace}/{name} failed")


class ContextCancelledError(RunnerError):
    """The context was cancelled before the operation finished"""

    def __init__(self, message: str = "context canceled"):
        super().__init__(message)


class SetupError(RunnerError):
    """Could not set up the run (config, CronJob, Job, Secret or watch)"""
