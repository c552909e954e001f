"""Capability interface for anything that can be granted roles."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol, runtime_checkable


@runtime_checkable
class RoleHolder(Protocol):
    """An object carrying direct role names and role group ids.

    Principals are the usual holders, but service accounts or API keys can
    be resolved the same way by implementing these two methods.
    """

    def direct_role_names(self) -> Iterable[str]: ...

    def direct_group_ids(self) -> Iterable[int]: ...
