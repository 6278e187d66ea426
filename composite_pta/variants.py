"""Model variant descriptors for composite-reservoir well-test models.

A variant is the combination of the inner- and outer-zone medium, the outer
boundary and whether wellbore storage/skin is modelled. The legacy integer
ids 1-36 are kept only for config files and the command line:

- 1-6:   dual porosity + dual porosity
- 7-12:  homogeneous + homogeneous
- 13-18: dual porosity + homogeneous
- 19-24: interlayer + interlayer
- 25-30: interlayer + homogeneous
- 31-36: interlayer + dual porosity

Within each block of six, offsets 0/1 are infinite, 2/3 closed and 4/5
constant-pressure; even offsets consider storage.
"""

import numbers
from dataclasses import dataclass
from enum import Enum
from typing import List, Tuple


class Medium(str, Enum):
    """Zone medium type."""

    HOMOGENEOUS = "homogeneous"
    DUAL_POROSITY = "dual_porosity"
    INTERLAYER = "interlayer"


class Boundary(str, Enum):
    """Outer boundary type."""

    INFINITE = "infinite"
    CLOSED = "closed"
    CONSTANT_PRESSURE = "constant_pressure"


class Storage(str, Enum):
    """Wellbore storage and skin treatment."""

    CONSIDERED = "considered"
    IGNORED = "ignored"


_MEDIUM_BLOCKS: Tuple[Tuple[Medium, Medium], ...] = (
    (Medium.DUAL_POROSITY, Medium.DUAL_POROSITY),
    (Medium.HOMOGENEOUS, Medium.HOMOGENEOUS),
    (Medium.DUAL_POROSITY, Medium.HOMOGENEOUS),
    (Medium.INTERLAYER, Medium.INTERLAYER),
    (Medium.INTERLAYER, Medium.HOMOGENEOUS),
    (Medium.INTERLAYER, Medium.DUAL_POROSITY),
)
_BOUNDARY_ORDER = (Boundary.INFINITE, Boundary.CLOSED, Boundary.CONSTANT_PRESSURE)

_MEDIUM_LABELS = {
    Medium.HOMOGENEOUS: "homogeneous",
    Medium.DUAL_POROSITY: "dual porosity",
    Medium.INTERLAYER: "interlayer",
}
_BOUNDARY_LABELS = {
    Boundary.INFINITE: "infinite outer boundary",
    Boundary.CLOSED: "closed outer boundary",
    Boundary.CONSTANT_PRESSURE: "constant-pressure outer boundary",
}

N_CATALOGUED = 6 * len(_MEDIUM_BLOCKS)


@dataclass(frozen=True)
class ModelVariant:
    """Immutable description of one well-test model.

    Attributes:
        inner_medium: Medium of the inner (stimulated) zone
        outer_medium: Medium of the outer zone
        boundary: Outer boundary condition
        storage: Wellbore storage and skin treatment
    """

    inner_medium: Medium = Medium.HOMOGENEOUS
    outer_medium: Medium = Medium.HOMOGENEOUS
    boundary: Boundary = Boundary.INFINITE
    storage: Storage = Storage.IGNORED

    def __post_init__(self):
        # Accept plain strings, e.g. from config files
        object.__setattr__(self, "inner_medium", Medium(self.inner_medium))
        object.__setattr__(self, "outer_medium", Medium(self.outer_medium))
        object.__setattr__(self, "boundary", Boundary(self.boundary))
        object.__setattr__(self, "storage", Storage(self.storage))

    @property
    def has_storage(self) -> bool:
        return self.storage is Storage.CONSIDERED

    @property
    def is_infinite(self) -> bool:
        return self.boundary is Boundary.INFINITE

    @property
    def uses_interlayer(self) -> bool:
        return Medium.INTERLAYER in (self.inner_medium, self.outer_medium)

    @classmethod
    def from_model_id(cls, model_id: int) -> "ModelVariant":
        """Build a variant from its legacy id (1-36).

        Raises:
            ValueError: If the id is not catalogued
        """
        if not isinstance(model_id, numbers.Integral) or isinstance(model_id, bool):
            raise ValueError(f"Model id must be an integer, got {model_id!r}")
        if model_id < 1 or model_id > N_CATALOGUED:
            raise ValueError(f"Model id must be in 1..{N_CATALOGUED}, got {model_id}")

        block, offset = divmod(int(model_id) - 1, 6)
        inner, outer = _MEDIUM_BLOCKS[block]
        return cls(
            inner_medium=inner,
            outer_medium=outer,
            boundary=_BOUNDARY_ORDER[offset // 2],
            storage=Storage.CONSIDERED if offset % 2 == 0 else Storage.IGNORED,
        )

    @property
    def model_id(self) -> int:
        """Legacy id (1-36) of this variant.

        Raises:
            ValueError: If the medium pair has no catalogued id
        """
        pair = (self.inner_medium, self.outer_medium)
        if pair not in _MEDIUM_BLOCKS:
            raise ValueError(
                f"No catalogued id for {pair[0].value} + {pair[1].value} media"
            )
        block = _MEDIUM_BLOCKS.index(pair)
        offset = 2 * _BOUNDARY_ORDER.index(self.boundary)
        if not self.has_storage:
            offset += 1
        return 6 * block + offset + 1

    def name(self, verbose: bool = True) -> str:
        """Readable model name.

        Args:
            verbose: Append storage, boundary and media details

        Returns:
            Model name string
        """
        try:
            base = f"Fractured horizontal well, radial composite model {self.model_id}"
        except ValueError:
            base = "Fractured horizontal well, radial composite model"
        if not verbose:
            return base
        storage = (
            "with wellbore storage and skin"
            if self.has_storage
            else "without wellbore storage and skin"
        )
        media = (
            f"{_MEDIUM_LABELS[self.inner_medium]} + {_MEDIUM_LABELS[self.outer_medium]}"
        )
        return f"{base} ({storage}, {_BOUNDARY_LABELS[self.boundary]}, {media})"

    def __str__(self) -> str:
        return self.name(verbose=False)


def all_variants() -> List[ModelVariant]:
    """The 36 catalogued variants in id order."""
    return [ModelVariant.from_model_id(i) for i in range(1, N_CATALOGUED + 1)]
