import re
from typing import List, Sequence

from cashdesk.config import settings
from cashdesk.core.errors import InvalidInput
from cashdesk.data.pos_tabs import default_pos_tab_groups
from cashdesk.schemas.pos_tabs import PosTabGroup, PosTabGroupResponse, PosTabResponse

_NON_SLUG = re.compile(r"[^a-z0-9]+")


def get_pos_tab_groups() -> List[PosTabGroup]:
    return list(settings.pos_tab_groups) or default_pos_tab_groups()


def sluggify_tab(groups: Sequence[PosTabGroup], group_index: int, tab_index: int) -> str:
    """«Tables», 2 → «tables-2». Вкладка адресуется индексом, а не подписью."""
    if not 0 <= group_index < len(groups):
        raise InvalidInput(f"Нет группы вкладок с индексом {group_index}")
    group = groups[group_index]
    if not 0 <= tab_index < len(group.tabs):
        raise InvalidInput(f"В группе «{group.name}» нет вкладки с индексом {tab_index}")
    slug = _NON_SLUG.sub("-", f"{group.name}-{tab_index}".lower())
    return slug.strip("-")


def describe_tab_groups(groups: Sequence[PosTabGroup]) -> List[PosTabGroupResponse]:
    return [
        PosTabGroupResponse(
            name=group.name,
            tabs=[
                PosTabResponse(label=tab.label, color=tab.color, slug=sluggify_tab(groups, gi, ti))
                for ti, tab in enumerate(group.tabs)
            ],
        )
        for gi, group in enumerate(groups)
    ]
