"""Status catalog: display copy, row actions and transition endpoints."""
import logging
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ActionDescriptor(BaseModel):
    """Row action shown for a workflow status."""

    label: str
    transition: Optional[str] = None
    variant: Optional[str] = None
    capability: Optional[str] = None
    disabled: bool = False


class StatusInfo(BaseModel):
    """Display data for a workflow status."""

    title: str
    hint: str = ""
    actions: List[ActionDescriptor] = []
    fallback: List[ActionDescriptor] = []


class StatusCatalog:
    """Status catalog loaded from YAML configuration."""

    def __init__(self, catalog_file: Optional[str] = None):
        """Initialize with optional catalog file path."""
        if catalog_file is None:
            catalog_file = Path(__file__).parent / "data" / "status_catalog.yaml"
        self.catalog_file = Path(catalog_file)
        self._statuses: Optional[Dict[str, StatusInfo]] = None
        self._transitions: Dict[str, str] = {}

    def _load(self) -> Dict[str, StatusInfo]:
        """Load the catalog from the YAML file once."""
        if self._statuses is None:
            with open(self.catalog_file, "r") as f:
                data = yaml.safe_load(f) or {}
            self._transitions = dict(data.get("transitions") or {})
            self._statuses = {
                status: StatusInfo(**info)
                for status, info in (data.get("statuses") or {}).items()
            }
            logger.debug(
                f"[CATALOG] Loaded {len(self._statuses)} statuses from {self.catalog_file}"
            )
        return self._statuses

    def info(self, status: str) -> Optional[StatusInfo]:
        """Display data for a status, None for unknown tokens."""
        return self._load().get(status)

    def title(self, status: str, session_status: Optional[str] = None) -> str:
        """Friendly status label; a paid session always reads as paid."""
        if session_status == "paid":
            status = "paid"
        info = self.info(status)
        return info.title if info else status

    def endpoint(self, transition: str, order_id: int) -> str:
        """Backend endpoint of a transition."""
        self._load()
        template = self._transitions.get(transition)
        if template is None:
            raise KeyError(f"Unknown transition: {transition}")
        return template.format(order_id=order_id)

    def has_transition(self, transition: str) -> bool:
        """Check whether a transition is known."""
        self._load()
        return transition in self._transitions

    def allowed_actions(self, status: str, capabilities) -> List[ActionDescriptor]:
        """
        Actions of a status the role is allowed to use.

        When the role is allowed none of them, the status fallback actions are used.
        """
        info = self.info(status)
        if info is None:
            return []
        allowed = [
            action
            for action in info.actions
            if not action.capability or capabilities.has(action.capability)
        ]
        if not allowed:
            return list(info.fallback)
        return allowed


_catalog: Optional[StatusCatalog] = None


def get_status_catalog() -> StatusCatalog:
    """Shared catalog instance."""
    global _catalog
    if _catalog is None:
        _catalog = StatusCatalog()
    return _catalog
