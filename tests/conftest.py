from __future__ import annotations

from typing import Callable, Iterator

import pytest

from wodlog.storage import Storage

HEADER = (
    "Customer Name,Location Name,Date,Program Name,Class Name,Component Type,Component ID,"
    "Component Name,Component Description,Performance Result Type,Rep Scheme,Fully Formatted Result,"
    "From Weightlifting Total,From Variable Set,Is Rx,Is Rx Plus,Is Personal Record,"
    "Personal Record Description,Comment"
)


def wodify_line(
    date: str = "01/05/2024",
    component_type: str = "Weightlifting",
    component_name: str = "Back Squat",
    result_type: str = "Weight",
    result: str = "1 x 5 @ 135 lbs",
    is_pr: str = "FALSE",
    comment: str = "",
    description: str = "",
    is_rx: str = "FALSE",
) -> str:
    fields = [
        "Jane Doe", "CrossFit Box", date, "CrossFit", "5:30 AM",
        component_type, "123", component_name, description,
        result_type, "", result,
        "FALSE", "FALSE", is_rx, "FALSE", is_pr, "", comment,
    ]
    return ",".join(fields)


@pytest.fixture()
def line() -> Callable[..., str]:
    """One export data line; keyword overrides for the interesting columns."""
    return wodify_line


@pytest.fixture()
def wodify_csv() -> Callable[..., str]:
    """Build an export: wodify_csv(line, line, ...) with the standard header prepended."""
    def _build(*lines: str) -> str:
        return "\n".join([HEADER, *lines]) + "\n"
    return _build


@pytest.fixture()
def storage(tmp_path) -> Iterator[Storage]:
    s = Storage(tmp_path / "test.db")
    yield s
    s.close()
