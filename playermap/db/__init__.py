"""
Mapping database package.

Modules:
    init_db: PlayerMappingDB store, record types and the init/check CLI
"""

from playermap.db.init_db import (
    MATCH_METHODS,
    UNMAPPED_SOURCES,
    PlayerMapping,
    PlayerMappingDB,
    UnmappedPlayer,
)

__all__ = [
    "MATCH_METHODS",
    "UNMAPPED_SOURCES",
    "PlayerMapping",
    "PlayerMappingDB",
    "UnmappedPlayer",
]
