import pytest

from nad_admission.annotation import NetworkReference, parse_network_annotation
from nad_admission.errors import (
    EmptyAnnotationError,
    InvalidNetworkObjectNameError,
    InvalidTokenFormatError,
    MalformedAnnotationJSONError,
    ParseError,
)


def test_parse_shorthand_with_namespace_and_interface():
    refs = parse_network_annotation("ns1/netA@eth0,ns1/netB", "default")

    assert refs == [
        NetworkReference(name="netA", namespace="ns1", interface_name="eth0"),
        NetworkReference(name="netB", namespace="ns1", interface_name=""),
    ]


def test_parse_shorthand_applies_default_namespace_and_trims():
    refs = parse_network_annotation(" net-a , other/net-b@net1 ", "default")

    assert refs == [
        NetworkReference("net-a", "default", ""),
        NetworkReference("net-b", "other", "net1"),
    ]


def test_parse_json_list():
    raw = '[{"name": "net-a", "interface": "eth1"}, {"name": "net-b", "namespace": "ns2"}]'

    refs = parse_network_annotation(raw, "default")

    assert refs == [
        NetworkReference("net-a", "default", "eth1"),
        NetworkReference("net-b", "ns2", ""),
    ]


def test_parse_json_accepts_interface_request_key():
    refs = parse_network_annotation('[{"name": "net-a", "interfaceRequest": "eth2"}]', "ns")

    assert refs[0].interface_name == "eth2"


def test_empty_annotation_is_rejected():
    with pytest.raises(EmptyAnnotationError) as excinfo:
        parse_network_annotation("", "default")

    assert excinfo.value.reason == "EmptyAnnotation"


@pytest.mark.parametrize(
    "raw",
    [
        '[{"name": "net-a"',
        '{"name": "net-a"}',
        '["net-a"]',
        '[{"name": 7}]',
    ],
)
def test_malformed_json_is_rejected(raw):
    with pytest.raises(MalformedAnnotationJSONError):
        parse_network_annotation(raw, "default")


def test_quote_in_value_selects_json_branch():
    # Not valid shorthand either, but it must fail as JSON, not as a name.
    with pytest.raises(MalformedAnnotationJSONError):
        parse_network_annotation('net-a"', "default")


@pytest.mark.parametrize("raw", ["a/b/c", "net-a@eth0@eth1", "ns/net@a@b"])
def test_repeated_separators_are_rejected(raw):
    with pytest.raises(InvalidNetworkObjectNameError):
        parse_network_annotation(raw, "default")


def test_empty_item_is_rejected():
    with pytest.raises(InvalidNetworkObjectNameError):
        parse_network_annotation("net-a,,net-b", "default")


@pytest.mark.parametrize("raw, token", [("net_a", "net_a"), ("ns./net", "ns."), ("net@-eth0", "-eth0")])
def test_invalid_token_is_named(raw, token):
    with pytest.raises(InvalidTokenFormatError) as excinfo:
        parse_network_annotation(raw, "default")

    assert excinfo.value.token == token
    assert token in excinfo.value.message


def test_json_tokens_are_validated_too():
    with pytest.raises(InvalidTokenFormatError):
        parse_network_annotation('[{"name": "bad_name"}]', "default")


def test_parse_errors_share_a_base_class():
    for raw in ("", "a/b/c", "bad_name", "[oops"):
        with pytest.raises(ParseError):
            parse_network_annotation(raw, "default")
