from .participant import Caller, ParticipantSnapshot

__all__ = ["Caller", "ParticipantSnapshot"]
