"""Error taxonomy for the study session engine."""


class StudyFlowError(Exception):
    """Base class for all StudyFlow errors."""


class InvalidConfiguration(StudyFlowError):
    """Session setup rejected before any state was created."""


class GenerationFailure(StudyFlowError):
    """The content collaborator could not produce notes or a quiz."""


class PersistenceFailure(StudyFlowError):
    """A session record could not be written."""


class PlaybackUnavailable(StudyFlowError):
    """An ambience track could not be played."""
