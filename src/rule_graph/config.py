import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import find_dotenv, load_dotenv

from .walker import MAX_DEPTH


@dataclass(frozen=True)
class LayoutConfig:
    """Geometry for the hierarchical and grid layouts."""
    nodes_per_row: int = 8
    spacing: float = 120      # horizontal distance between nodes in a row
    row_gap: float = 120      # vertical distance between rows of one tier
    group_gap: float = 180    # vertical distance between tiers
    grid_size: float = 180    # cell size for the priority grid
    top_margin: float = 0


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


@dataclass(frozen=True)
class Settings:
    layout: LayoutConfig = field(default_factory=LayoutConfig)
    max_depth: int = MAX_DEPTH

    @classmethod
    def from_env(cls, nodes_per_row: Optional[int] = None) -> 'Settings':
        """Read settings from the environment (and a .env file if present)."""
        load_dotenv(find_dotenv(usecwd=True))

        defaults = LayoutConfig()
        layout = LayoutConfig(
            nodes_per_row=nodes_per_row or _env_int("RULE_GRAPH_NODES_PER_ROW", defaults.nodes_per_row),
            spacing=_env_int("RULE_GRAPH_SPACING", defaults.spacing),
            row_gap=_env_int("RULE_GRAPH_ROW_GAP", defaults.row_gap),
            group_gap=_env_int("RULE_GRAPH_GROUP_GAP", defaults.group_gap),
            grid_size=_env_int("RULE_GRAPH_GRID_SIZE", defaults.grid_size),
            top_margin=_env_int("RULE_GRAPH_TOP_MARGIN", defaults.top_margin),
        )
        return cls(
            layout=layout,
            max_depth=_env_int("RULE_GRAPH_MAX_DEPTH", MAX_DEPTH),
        )
