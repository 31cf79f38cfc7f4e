"""System checks for the capability matrix."""

from django.core.checks import Error, register

from access_control.permissions import CAPABILITIES, ActionKind


@register()
def capability_matrix_is_complete(app_configs, **kwargs):
    """Ensure every ActionKind has an entry in the capability matrix.

    An action without an entry is denied for everyone, which usually means a
    new ActionKind was added without deciding who may perform it.
    """
    errors: list[Error] = []

    for action in ActionKind:
        if action not in CAPABILITIES:
            errors.append(
                Error(
                    f"ActionKind.{action.name} has no entry in CAPABILITIES.",
                    hint="Add a Capability for it in access_control/permissions.py.",
                    obj=action,
                    id="access_control.E001",
                )
            )

    return errors
