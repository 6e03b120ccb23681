"""Вкладки кассы по умолчанию (если в настройках не заданы свои)."""
from typing import List

from cashdesk.schemas.pos_tabs import PosTab, PosTabGroup


def default_pos_tab_groups() -> List[PosTabGroup]:
    return [
        PosTabGroup(name="Tables", tabs=[PosTab() for _ in range(5)]),
        PosTabGroup(name="Terrasse", tabs=[PosTab(label="Sunny"), PosTab(color="#f59e0b")]),
    ]
