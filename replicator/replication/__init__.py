from .orchestrator import STAGE_TRANSITIONS, ReplicationOrchestrator, StageTransition
from .stage import Stage, check_stage

__all__ = [
    'ReplicationOrchestrator',
    'STAGE_TRANSITIONS',
    'StageTransition',
    'Stage',
    'check_stage',
]
