import copy

import pytest

from dsvc.api_models import AdjustOptions
from dsvc.errors import ValidationError
from dsvc.spec_merge import dict_to_env, env_to_dict, merge_spec


def _spec(**container):
    base = {"Image": "app:1@sha256:deadbeef", "Env": ["A=0", "B=2"], "Labels": {"team": "core"}}
    base.update(container)
    return {
        "Name": "svc-x",
        "TaskTemplate": {"ContainerSpec": base, "ForceUpdate": 0},
        "Mode": {"Replicated": {"Replicas": 3}},
    }


def test_empty_options_is_identity():
    spec = _spec()
    assert merge_spec(spec, {}) == spec
    assert merge_spec(spec, None) == spec


def test_input_spec_is_not_modified():
    spec = _spec()
    before = copy.deepcopy(spec)
    merge_spec(spec, {"image": "app:2", "env": {"C": "3"}, "replicas": 5, "force": True})
    assert spec == before


def test_env_overlay_then_remove():
    out = merge_spec(_spec(), {"env": {"A": "1"}, "envRemove": ["B"]})
    assert out["TaskTemplate"]["ContainerSpec"]["Env"] == ["A=1"]


def test_env_is_sorted_by_key():
    out = merge_spec(_spec(Env=["Z=1"]), {"env": {"M": "2", "A": "x"}})
    assert out["TaskTemplate"]["ContainerSpec"]["Env"] == ["A=x", "M=2", "Z=1"]


def test_env_created_when_missing():
    spec = _spec()
    del spec["TaskTemplate"]["ContainerSpec"]["Env"]
    out = merge_spec(spec, {"env": {"PORT": "8080"}})
    assert out["TaskTemplate"]["ContainerSpec"]["Env"] == ["PORT=8080"]


def test_labels_overlay_and_remove():
    out = merge_spec(_spec(), {"labels": {"tier": "web"}, "labelRemove": ["team"]})
    assert out["TaskTemplate"]["ContainerSpec"]["Labels"] == {"tier": "web"}


def test_image_replaced():
    out = merge_spec(_spec(), {"image": "app:2"})
    assert out["TaskTemplate"]["ContainerSpec"]["Image"] == "app:2"


def test_replicas_creates_mode():
    spec = _spec()
    del spec["Mode"]
    out = merge_spec(spec, {"replicas": 4})
    assert out["Mode"] == {"Replicated": {"Replicas": 4}}


def test_replicas_zero_is_applied():
    out = merge_spec(_spec(), {"replicas": 0})
    assert out["Mode"]["Replicated"]["Replicas"] == 0


def test_force_twice_bumps_counter_and_strips_digest_once():
    once = merge_spec(_spec(), {"force": True})
    twice = merge_spec(once, {"force": True})

    assert once["TaskTemplate"]["ForceUpdate"] == 1
    assert twice["TaskTemplate"]["ForceUpdate"] == 2
    assert once["TaskTemplate"]["ContainerSpec"]["Image"] == "app:1"
    assert twice["TaskTemplate"]["ContainerSpec"]["Image"] == "app:1"


def test_force_false_changes_nothing():
    spec = _spec()
    assert merge_spec(spec, {"force": False}) == spec


def test_unknown_keys_are_ignored():
    spec = _spec()
    assert merge_spec(spec, {"colour": "blue"}) == spec


def test_snake_case_names_and_model_accepted():
    out = merge_spec(_spec(), AdjustOptions(env_remove=["A"], label_remove=["team"]))
    container = out["TaskTemplate"]["ContainerSpec"]
    assert container["Env"] == ["B=2"]
    assert container["Labels"] == {}


@pytest.mark.parametrize(
    "options",
    [
        {"image": 5},
        {"env": ["A=1"]},
        {"envRemove": "A"},
        {"labels": "x"},
        {"replicas": "many"},
        {"force": "definitely"},
        {"force": "yes"},
        {"force": 1},
        {"replicas": True},
        {"replicas": "3"},
        {"replicas": 2.0},
        {"env": {"A": None}},
        {"env": {"DEBUG": True}},
        {"labels": {"tier": 1}},
        {"envRemove": [1]},
    ],
)
def test_wrong_shapes_raise_validation_error(options):
    with pytest.raises(ValidationError):
        merge_spec(_spec(), options)


def test_options_must_be_a_mapping():
    with pytest.raises(ValidationError):
        merge_spec(_spec(), ["image", "app:2"])


def test_env_helpers_split_on_first_equals():
    assert env_to_dict(["URL=http://x?a=b", "FLAG"]) == {"URL": "http://x?a=b", "FLAG": ""}
    assert dict_to_env({"b": 1, "a": "2"}) == ["a=2", "b=1"]


def test_wrong_shape_leaves_spec_untouched():
    spec = _spec()
    with pytest.raises(ValidationError):
        merge_spec(spec, {"replicas": True, "force": "yes"})
    assert spec["Mode"]["Replicated"]["Replicas"] == 3
    assert spec["TaskTemplate"]["ForceUpdate"] == 0
