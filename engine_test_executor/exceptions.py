"""
Exceptions raised while running component tests on the engine.
"""


class EngineError(Exception):
    """Base exception for engine communication errors"""
    pass


class ConfigError(EngineError):
    """Invalid or missing configuration"""
    pass


class SubmissionError(EngineError):
    """The engine did not accept a test request"""
    pass


class PollError(EngineError):
    """Waiting for a test run to finish failed"""
    pass


class PollTransportError(PollError):
    """A status check returned an unexpected response"""
    pass


class PollTimeout(PollError):
    """The test run did not complete before the deadline"""
    pass
