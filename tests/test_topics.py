import pytest

from roomcontrol.domain import topics


def test_parse_five_segment_topic():
    addr = topics.parse_topic("room/bath/fan/fan/minRunTime")
    assert addr == topics.Address("bath", "fan", "fan", "minRunTime")
    assert addr.topic == "room/bath/fan/fan/minRunTime"


def test_missing_sub_action_means_status():
    addr = topics.parse_topic("room/bath/light/ceiling")
    assert addr.sub_action == "status"
    assert addr.topic == "room/bath/light/ceiling/status"


@pytest.mark.parametrize(
    "topic",
    [
        "",
        "room",
        "room/bath/light",
        "room/bath/light/ceiling/status/extra",
        "house/bath/light/ceiling/status",
        "room//light/ceiling/status",
        "room/bath/light//status",
        "automation/wohnzimmer/init",
    ],
)
def test_malformed_topics_are_rejected(topic):
    assert topics.parse_topic(topic) is None


def test_builders():
    assert topics.shutter_action("wz", "terrasse", "down") == "room/wz/shutter/terrasse/down"
    assert topics.humidity_status("bad", "dht") == "room/bad/humidity/dht/status"
    assert topics.fan_speed("bad", "luefter") == "room/bad/fan/luefter/speed"
    assert topics.button_active("wz", "b1") == "room/wz/button/b1/active"
    assert topics.automation_init("wz") == "automation/wz/init"


def test_decode_payload_variants():
    assert topics.decode_payload(b'{"value": 63.5}') == {"value": 63.5}
    assert topics.decode_payload('{"value": "on"}') == {"value": "on"}
    assert topics.decode_payload({"value": 1}) == {"value": 1}
    assert topics.decode_payload(b"") == {}
    assert topics.decode_payload(None) == {}


@pytest.mark.parametrize("raw", [b"not json", b"[1, 2]", b'"on"', b"42"])
def test_decode_payload_rejects_non_objects(raw):
    with pytest.raises(ValueError):
        topics.decode_payload(raw)


def test_encode_payload():
    assert topics.encode_payload(topics.value_payload("max")) == '{"value": "max"}'
    assert topics.encode_payload(None) == "{}"
