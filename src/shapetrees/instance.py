from dataclasses import dataclass

from shapetrees.exceptions import InputError
from shapetrees.http import ShapeTreeContext
from shapetrees.resources import ManageableResource, ManagerResource, MissingManagerResource


@dataclass(frozen=True)
class ManageableInstance:
    """Pairing of a manageable resource with its manager resource, as seen by
    a single resolution. Either side may be one of the "missing" variants.

    `was_request_for_manager` records whether the URL that was resolved was
    the manager's (`True`) or the manageable resource's (`False`).
    """
    context: ShapeTreeContext
    manageable_resource: ManageableResource
    manager_resource: ManagerResource
    was_request_for_manager: bool = False

    def __post_init__(self):
        if self.context is None:
            raise InputError('Must provide a shape tree context')
        if self.manageable_resource is None:
            raise InputError('Must provide a manageable resource')
        if self.manager_resource is None:
            raise InputError('Must provide a manager resource')

    @property
    def is_unmanaged(self) -> bool:
        return isinstance(self.manager_resource, MissingManagerResource)

    @property
    def is_managed(self) -> bool:
        return not self.is_unmanaged
