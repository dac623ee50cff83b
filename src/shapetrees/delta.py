import logging
from dataclasses import dataclass, field
from typing import Optional

from shapetrees.exceptions import InputError
from shapetrees.manager import ShapeTreeAssignment, ShapeTreeManager

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ShapeTreeManagerDelta:
    """Difference between an existing manager and a proposed replacement,
    compared slot by slot (i.e., by assignment URL).

    ```pycon
    >>> delta = ShapeTreeManagerDelta.evaluate(existing, updated)

    >>> delta.all_removed()
    False
    ```
    """
    existing_manager: Optional[ShapeTreeManager]
    updated_manager: Optional[ShapeTreeManager]
    updated_assignments: list[ShapeTreeAssignment] = field(default_factory=list)
    """Assignments that are new in the updated manager, or whose content changed"""
    removed_assignments: list[ShapeTreeAssignment] = field(default_factory=list)
    """Assignments of the existing manager whose slot is absent from the updated manager"""

    @classmethod
    def evaluate(
        cls,
        existing_manager: Optional[ShapeTreeManager],
        updated_manager: Optional[ShapeTreeManager],
    ) -> 'ShapeTreeManagerDelta':
        """Compare `updated_manager` with `existing_manager`. Either one (but not
        both) may be `None`, which is treated the same as a manager with no
        assignments.

        :raises InputError: if both managers are `None`
        """
        if existing_manager is None and updated_manager is None:
            raise InputError('Cannot compare two null managers')

        existing = {a.url: a for a in existing_manager} if existing_manager is not None else {}
        updated = {a.url: a for a in updated_manager} if updated_manager is not None else {}

        delta = cls(
            existing_manager=existing_manager,
            updated_manager=updated_manager,
            # new slots, or existing slots whose content differs
            updated_assignments=[a for url, a in updated.items() if existing.get(url) != a],
            removed_assignments=[a for url, a in existing.items() if url not in updated],
        )
        logger.debug(
            f'{len(delta.updated_assignments)} updated and '
            f'{len(delta.removed_assignments)} removed assignment(s)'
        )
        return delta

    def is_updated(self) -> bool:
        return bool(self.updated_assignments) or bool(self.removed_assignments)

    def was_reduced(self) -> bool:
        return bool(self.removed_assignments)

    def all_removed(self) -> bool:
        """`True` if the result of the change is a manager with nothing left
        in it, so the manager itself should be deleted. Unchanged slots count
        as survivors."""
        if self.updated_assignments or not self.removed_assignments:
            return False
        existing_count = len(self.existing_manager) if self.existing_manager is not None else 0
        return len(self.removed_assignments) == existing_count
