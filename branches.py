# branches.py
from enum import Enum

from logger import get_logger

logger = get_logger("branches")

CASHIER_ROLE = "KASIR"
LAST_BRANCH_KEY = "activeCabangId"


class BranchState(str, Enum):
    NO_BRANCH_SELECTED = "NO_BRANCH_SELECTED"
    BRANCH_SELECTED = "BRANCH_SELECTED"


class Branch:
    """A sales location with its own stock levels."""
    def __init__(self, branch_id, name: str = "", is_active=True):
        self.id = branch_id
        self.name = name
        self.is_active = is_active

    @classmethod
    def from_dict(cls, data):
        return cls(data['id'], data.get('name', ''), data.get('isActive', True))

    def __repr__(self):
        return f"Branch({self.id!r}, {self.name!r})"


class BranchSelector:
    """
    Picks the branch the terminal works against.

    Cashiers are pinned to their assigned branch. Everyone else starts
    from the branch persisted last time, falling back to their assigned
    branch and then to the first active one.
    """
    def __init__(self, db, role=None, assigned_branch_id=None):
        self.db = db
        self.role = role
        self.assigned_branch_id = assigned_branch_id
        self.branches = []
        self._selected = None
        self._listeners = []

    @property
    def pinned(self):
        return self.role == CASHIER_ROLE

    @property
    def branch_id(self):
        """The effective branch id, or None."""
        if self.pinned:
            return self.assigned_branch_id or None
        return self._selected or self.assigned_branch_id or None

    @property
    def state(self):
        if self.branch_id:
            return BranchState.BRANCH_SELECTED
        return BranchState.NO_BRANCH_SELECTED

    def on_change(self, listener):
        """listener(branch_id) runs after every effective branch change."""
        self._listeners.append(listener)

    def initialize(self, fetch_branches):
        """Load active branches and choose the starting one."""
        before = self.branch_id
        if self.pinned:
            logger.info(f"Cashier pinned to branch {self.assigned_branch_id}")
            self._notify(before, force=True)
            return self.branch_id

        self.branches = [b for b in fetch_branches() if b.is_active]
        active_ids = [b.id for b in self.branches]
        # settings are stored as text, so match on the string form of the id
        saved = self.db.get_setting(LAST_BRANCH_KEY)
        by_key = {str(b.id): b.id for b in self.branches}

        if saved is not None and saved in by_key:
            choice = by_key[saved]
        elif self.assigned_branch_id:
            choice = self.assigned_branch_id
        elif active_ids:
            choice = active_ids[0]
        else:
            choice = None

        if choice is None:
            logger.warning("No active branch available")
            return None

        self._set(choice)
        self._notify(before, force=True)
        return self.branch_id

    def select(self, branch_id) -> bool:
        """Switch to one of the loaded active branches; refused for cashiers."""
        if self.pinned:
            logger.warning(f"Cashier cannot switch to branch {branch_id}")
            return False
        if branch_id not in [b.id for b in self.branches]:
            logger.warning(f"Branch {branch_id} is not an active branch")
            return False
        before = self.branch_id
        self._set(branch_id)
        self._notify(before)
        return True

    def _set(self, branch_id):
        self._selected = branch_id
        self.db.set_setting(LAST_BRANCH_KEY, branch_id)

    def _notify(self, before, force=False):
        current = self.branch_id
        if current is None or (current == before and not force):
            return
        logger.info(f"Active branch is now {current}")
        for listener in list(self._listeners):
            listener(current)
