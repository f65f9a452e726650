"""Demographic category types and the mapping of raw codes onto them.

Raw patient files spell categories in several ways (``"M"``, ``"male"``,
``"white"``...).  Each dimension is modelled as an :class:`~enum.Enum`
with two fallback members: ``OTHER`` for a non-null value outside the
known set and ``UNKNOWN`` for a missing value.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, List, Type

import pandas as pd

logger = logging.getLogger(__name__)


class Gender(str, Enum):
    FEMALE = "Female"
    MALE = "Male"
    OTHER = "Other"
    UNKNOWN = "Unknown"


class Race(str, Enum):
    WHITE = "White"
    BLACK = "Black"
    ASIAN = "Asian"
    NATIVE = "Native"
    HAWAIIAN = "Hawaiian"
    OTHER = "Other"
    UNKNOWN = "Unknown"


# lowercase raw code -> category
GENDER_CODES: Dict[str, Gender] = {
    "f": Gender.FEMALE,
    "female": Gender.FEMALE,
    "m": Gender.MALE,
    "male": Gender.MALE,
}

RACE_CODES: Dict[str, Race] = {
    "white": Race.WHITE,
    "black": Race.BLACK,
    "asian": Race.ASIAN,
    "native": Race.NATIVE,
    "hawaiian": Race.HAWAIIAN,
    "other": Race.OTHER,
}


def category_labels(enum_cls: Type[Enum]) -> List[str]:
    """Return the display labels of an enumeration in declaration order."""
    return [member.value for member in enum_cls]


def map_categories(
    series: pd.Series,
    codes: Dict[str, Enum],
    enum_cls: Type[Enum],
) -> pd.Series:
    """Map raw codes onto an enumeration as an ordered pandas Categorical.

    Parameters
    ----------
    series : pd.Series
        Raw category strings.
    codes : Dict[str, Enum]
        Lookup from lowercase, stripped raw code to enum member.
    enum_cls : Type[Enum]
        Enumeration providing ``OTHER`` and ``UNKNOWN`` fallbacks.

    Returns
    -------
    pd.Series
        Categorical Series whose categories are the enum labels.
    """
    missing = series.isna()
    keys = series.map(lambda raw: str(raw).strip().lower(), na_action="ignore")
    mapped = keys.map({k: v.value for k, v in codes.items()})

    unrecognised = mapped.isna() & ~missing
    if unrecognised.any():
        logger.warning(
            "%d value(s) in %r fall outside %s; mapped to %r: %s",
            int(unrecognised.sum()),
            series.name,
            enum_cls.__name__,
            enum_cls.OTHER.value,
            sorted(series[unrecognised].astype(str).unique())[:5],
        )

    labels = mapped.astype(object)
    labels[unrecognised] = enum_cls.OTHER.value
    labels[missing] = enum_cls.UNKNOWN.value
    return pd.Series(
        pd.Categorical(labels, categories=category_labels(enum_cls)),
        index=series.index,
        name=series.name,
    )
