# app/models/counter.py
from beanie import Document

class SequenceCounter(Document):
    """Holds the last issued value for a named sequence (e.g. ``rv_2025``)."""
    # _id is the sequence name so MongoDB keeps it unique for us
    id: str
    value: int = 0

    class Settings:
        name = "sequence_counters"
