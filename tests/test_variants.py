"""Tests for model variant descriptors."""

import numpy as np
import pytest

from composite_pta.variants import (
    Boundary,
    Medium,
    ModelVariant,
    Storage,
    all_variants,
)


class TestModelIdMapping:
    """Test legacy id <-> descriptor conversion."""

    @pytest.mark.parametrize(
        "model_id, inner, outer, boundary, storage",
        [
            (1, Medium.DUAL_POROSITY, Medium.DUAL_POROSITY, Boundary.INFINITE, Storage.CONSIDERED),
            (2, Medium.DUAL_POROSITY, Medium.DUAL_POROSITY, Boundary.INFINITE, Storage.IGNORED),
            (7, Medium.HOMOGENEOUS, Medium.HOMOGENEOUS, Boundary.INFINITE, Storage.CONSIDERED),
            (9, Medium.HOMOGENEOUS, Medium.HOMOGENEOUS, Boundary.CLOSED, Storage.CONSIDERED),
            (12, Medium.HOMOGENEOUS, Medium.HOMOGENEOUS, Boundary.CONSTANT_PRESSURE, Storage.IGNORED),
            (15, Medium.DUAL_POROSITY, Medium.HOMOGENEOUS, Boundary.CLOSED, Storage.CONSIDERED),
            (20, Medium.INTERLAYER, Medium.INTERLAYER, Boundary.INFINITE, Storage.IGNORED),
            (27, Medium.INTERLAYER, Medium.HOMOGENEOUS, Boundary.CLOSED, Storage.CONSIDERED),
            (36, Medium.INTERLAYER, Medium.DUAL_POROSITY, Boundary.CONSTANT_PRESSURE, Storage.IGNORED),
        ],
    )
    def test_from_model_id(self, model_id, inner, outer, boundary, storage):
        """Test ids decode to the catalogued descriptor."""
        variant = ModelVariant.from_model_id(model_id)
        assert variant.inner_medium is inner
        assert variant.outer_medium is outer
        assert variant.boundary is boundary
        assert variant.storage is storage

    def test_round_trip_all_ids(self):
        """Test every catalogued id round-trips."""
        for model_id in range(1, 37):
            assert ModelVariant.from_model_id(model_id).model_id == model_id

    def test_numpy_integer_accepted(self):
        assert ModelVariant.from_model_id(np.int64(8)).model_id == 8

    @pytest.mark.parametrize("bad", [0, 37, -1, True, 1.5, "7"])
    def test_invalid_ids_rejected(self, bad):
        """Test ids outside the catalogue raise ValueError."""
        with pytest.raises(ValueError):
            ModelVariant.from_model_id(bad)

    def test_uncatalogued_pair_has_no_id(self):
        """Test medium pairs outside the catalogue have no legacy id."""
        variant = ModelVariant(Medium.HOMOGENEOUS, Medium.INTERLAYER)
        with pytest.raises(ValueError):
            _ = variant.model_id
        # still nameable and solvable
        assert "homogeneous + interlayer" in variant.name()


class TestModelVariant:
    """Test descriptor behaviour."""

    def test_defaults(self):
        variant = ModelVariant()
        assert variant.inner_medium is Medium.HOMOGENEOUS
        assert variant.is_infinite
        assert not variant.has_storage
        assert variant.model_id == 8

    def test_string_coercion(self):
        """Test plain strings (as in config files) become enums."""
        variant = ModelVariant("dual_porosity", "homogeneous", "closed", "considered")
        assert variant.inner_medium is Medium.DUAL_POROSITY
        assert variant.boundary is Boundary.CLOSED
        assert variant.has_storage

    def test_invalid_string(self):
        with pytest.raises(ValueError):
            ModelVariant("granite")

    def test_frozen_and_hashable(self):
        variant = ModelVariant()
        with pytest.raises(Exception):
            variant.boundary = Boundary.CLOSED
        assert len({ModelVariant(), ModelVariant()}) == 1

    def test_uses_interlayer(self):
        assert ModelVariant.from_model_id(25).uses_interlayer
        assert not ModelVariant.from_model_id(1).uses_interlayer

    def test_names(self):
        variant = ModelVariant.from_model_id(9)
        assert str(variant).endswith("model 9")
        verbose = variant.name()
        assert "with wellbore storage and skin" in verbose
        assert "closed outer boundary" in verbose
        assert "homogeneous + homogeneous" in verbose


class TestAllVariants:
    def test_catalogue(self):
        variants = all_variants()
        assert len(variants) == 36
        assert len(set(variants)) == 36
        assert [v.model_id for v in variants] == list(range(1, 37))
