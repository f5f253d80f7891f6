"""Static road list served to the simple dashboard."""

from __future__ import annotations

from typing import List

from tfgw.serving.schemas import Road

ROADS = (
    Road(id="MG_ROAD_01", name="MG Road", path="..."),
    Road(id="BRIGADE_ROAD_02", name="Brigade Road", path="..."),
    Road(id="HOSUR_ROAD_03", name="Hosur Road", path="..."),
)


def list_roads() -> List[Road]:
    return [road.model_copy() for road in ROADS]
