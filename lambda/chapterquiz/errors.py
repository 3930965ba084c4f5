"""Exception types raised by the chapter quiz engine."""


class QuizError(Exception):
    """Base class for all quiz engine errors."""


class InvalidInputError(QuizError, ValueError):
    """A response or submission does not match what the boundary accepts."""


class InvalidQuestionError(InvalidInputError):
    """A quiz definition could not be parsed into questions."""


class SessionStateError(QuizError):
    """A session command was issued in a state that does not accept it."""


class RemoteStoreError(QuizError):
    """The remote progress store could not complete a request."""
