import pytest

from masterart.runtime.controls import (
    ControlDefaults,
    ControlValueResolver,
    coerce_ref,
    resolve,
)
from masterart.runtime.metadata import ControlRef, MasterMetadata

REF = ControlRef(control_token_id=2, lever_id=0)


def test_absent_ref_resolves_to_zero():
    assert resolve(100, {}, {}, REF) == 0
    assert resolve(100, {"1-0": 9}, {"2-0": 7}, REF) == 0


def test_override_wins_over_default():
    defaults = {"102-0": 10}
    overrides = {"102-0": 55}
    assert resolve(100, defaults, overrides, REF) == 55
    assert resolve(100, defaults, {}, REF) == 10


def test_literals_pass_through_unchanged():
    assert resolve(1, {}, {}, 42) == 42
    assert resolve(1, {}, {}, -3.5) == -3.5


def test_key_is_absolute():
    assert REF.key(100) == "102-0"
    assert ControlRef.model_validate({"token-id": 1, "lever-id": 3}).key(10) == "11-3"


def test_defaults_prefer_onchain_over_unminted():
    defaults = ControlDefaults(onchain={"5-0": 1}, unminted={"5-0": 9, "5-1": 4})
    assert defaults.merged() == {"5-0": 1, "5-1": 4}


def test_defaults_from_metadata():
    metadata = MasterMetadata.from_document(
        {
            "image": "ipfs://m",
            "layout": {"layers": []},
            "async-attributes": {"unminted-token-values": {"3-0": 12}},
            "control-token-values": {"3-1": 2},
        }
    )
    defaults = ControlDefaults.from_metadata(metadata)
    assert defaults.onchain == {"3-1": 2}
    assert defaults.unminted == {"3-0": 12}


def test_resolver_object_binds_master_and_overrides():
    resolver = ControlValueResolver(10, ControlDefaults(unminted={"12-0": 3}), {"12-1": 8})
    assert resolver(ControlRef(control_token_id=2, lever_id=0)) == 3
    assert resolver(ControlRef(control_token_id=2, lever_id=1)) == 8
    assert resolver(7) == 7

    updated = resolver.with_overrides({"12-0": 99})
    assert updated(ControlRef(control_token_id=2, lever_id=0)) == 99
    assert resolver(ControlRef(control_token_id=2, lever_id=0)) == 3


def test_values_for_reports_effective_values():
    resolver = ControlValueResolver(0, {"1-0": 4})
    refs = [ControlRef(control_token_id=1, lever_id=0), ControlRef(control_token_id=1, lever_id=1)]
    assert resolver.values_for(refs) == {"1-0": 4, "1-1": 0}


@pytest.mark.parametrize(
    "raw, expected",
    [
        (5, 5),
        (True, 1),
        ("12", 12),
        ("1.5", 1.5),
        ({"token-id": 1, "lever-id": 2}, ControlRef(control_token_id=1, lever_id=2)),
        ("abc", None),
        ({"x": 1}, None),
        (None, None),
    ],
)
def test_coerce_ref(raw, expected):
    assert coerce_ref(raw) == expected
