"""Tenant-scoped loading.

Every lookup the workflows issue names the tenant explicitly; a record that
exists but belongs to another tenant is indistinguishable from a missing one.
"""

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain


def load_for_tenant(aggregate_cls, identifier, tenant_id, message=None):
    """Fetch ``aggregate_cls`` by id, refusing records owned by another tenant."""
    message = message or f"{aggregate_cls.__name__} not found"
    if not identifier:
        raise ObjectNotFoundError({"_entity": [message]})

    try:
        aggregate = current_domain.repository_for(aggregate_cls).get(identifier)
    except ObjectNotFoundError:
        raise ObjectNotFoundError({"_entity": [message]}) from None

    if str(aggregate.tenant_id) != str(tenant_id):
        raise ObjectNotFoundError({"_entity": [message]})
    return aggregate
