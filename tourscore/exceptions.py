class ScoringError(Exception):
    pass


class CourseConfigurationError(ScoringError):
    """The course setup cannot support the requested scoring mode."""


class ScoreValidationError(ScoringError, ValueError):
    """A score edit was rejected before it reached the scorecard."""


class CompetitionNotFoundError(ScoringError):
    pass


class NothingToFinalizeError(ScoringError):
    pass
