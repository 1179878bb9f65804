"""
Application state and its reducer.

State is never mutated in place: every change is an action passed through
reduce(), which returns a new AppState. Interaction handlers request a
transition by returning an action inside their HandlerResult.
"""
from dataclasses import dataclass, replace
from typing import Optional

from .records import UserRow

VIEW_HOME = 'home'
VIEW_POST = 'post'
VIEW_PROFILE = 'profile'
VIEW_ADMIN = 'admin'
VIEW_AUTH = 'auth'
VIEWS = (VIEW_HOME, VIEW_POST, VIEW_PROFILE, VIEW_ADMIN, VIEW_AUTH)


@dataclass(frozen=True)
class AppState:
    current_user: Optional[UserRow] = None
    view: str = VIEW_HOME
    selected_post_id: Optional[int] = None
    selected_user_id: Optional[int] = None
    filter_category: Optional[str] = None
    last_error: Optional[str] = None


# Actions

@dataclass(frozen=True)
class Navigate:
    view: str


@dataclass(frozen=True)
class OpenPost:
    post_id: int


@dataclass(frozen=True)
class OpenProfile:
    user_id: int


@dataclass(frozen=True)
class FilterCategory:
    category: Optional[str]


@dataclass(frozen=True)
class SignedIn:
    user: UserRow


@dataclass(frozen=True)
class SignedOut:
    pass


@dataclass(frozen=True)
class Failed:
    message: str


def reduce(state, action):
    if isinstance(action, Navigate):
        if action.view not in VIEWS:
            raise ValueError(f"Unknown view: {action.view}")
        if action.view == VIEW_HOME:
            return replace(state, view=VIEW_HOME, selected_post_id=None,
                           selected_user_id=None, last_error=None)
        return replace(state, view=action.view, last_error=None)
    if isinstance(action, OpenPost):
        return replace(state, view=VIEW_POST, selected_post_id=action.post_id, last_error=None)
    if isinstance(action, OpenProfile):
        return replace(state, view=VIEW_PROFILE, selected_user_id=action.user_id, last_error=None)
    if isinstance(action, FilterCategory):
        return replace(state, filter_category=action.category or None)
    if isinstance(action, SignedIn):
        return replace(state, current_user=action.user, view=VIEW_HOME, last_error=None)
    if isinstance(action, SignedOut):
        return replace(state, current_user=None, view=VIEW_HOME)
    if isinstance(action, Failed):
        return replace(state, last_error=action.message)
    raise TypeError(f"Unsupported action: {action!r}")


def apply(state, *actions):
    for action in actions:
        if action is not None:
            state = reduce(state, action)
    return state
