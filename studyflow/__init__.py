# Live study session engine for StudyFlow
from .errors import (
    GenerationFailure, InvalidConfiguration, PersistenceFailure,
    PlaybackUnavailable, StudyFlowError
)
from .session import StudySessionController
from .storage import Storage

__all__ = [
    'StudySessionController', 'Storage', 'StudyFlowError',
    'InvalidConfiguration', 'GenerationFailure', 'PersistenceFailure',
    'PlaybackUnavailable',
]
