import json

import pytest

from meshadapter.ovms.modelconfig import (
    OvmsConfigListEntry,
    OvmsModelConfig,
    OvmsModelStatus,
    OvmsModelStatusResponse,
    OvmsModelVersionStatus,
    dump_repository_config,
    parse_config_response,
    parse_error_response,
    parse_repository_config,
)

EXAMPLE_REPOSITORY = """
{
  "model_config_list": [
    {"config": {"name": "model_name1", "base_path": "/models/model1"}},
    {"config": {"name": "model_name2", "base_path": "/models/model1"}}
  ]
}
"""

EXAMPLE_STATUS = """
{
  "mnist": {
    "model_version_status": [
      {
        "version": "3",
        "state": "AVAILABLE",
        "status": {"error_code": "OK", "error_message": "OK"}
      }
    ]
  }
}
"""


def test_parse_repository_config_example():
    entries = parse_repository_config(EXAMPLE_REPOSITORY)
    assert [entry.config.name for entry in entries] == ["model_name1", "model_name2"]
    assert all(entry.config.base_path == "/models/model1" for entry in entries)


def test_repository_config_round_trip():
    entries = [
        OvmsConfigListEntry(OvmsModelConfig("a", "/models/_ovms_models/a")),
        OvmsConfigListEntry(OvmsModelConfig("b", "/models/_ovms_models/b")),
    ]
    assert parse_repository_config(dump_repository_config(entries)) == entries


def test_dump_empty_repository_config():
    assert dump_repository_config([]) == '{"model_config_list":[]}'


def test_dump_is_compact_and_uses_wire_names():
    text = dump_repository_config([OvmsConfigListEntry(OvmsModelConfig("m", "/p"))])
    assert " " not in text
    assert json.loads(text) == {"model_config_list": [{"config": {"name": "m", "base_path": "/p"}}]}


def test_dump_escapes_html_characters():
    text = dump_repository_config([OvmsConfigListEntry(OvmsModelConfig("a<b>&c", "/p"))])
    assert "<" not in text and ">" not in text and "&" not in text
    assert parse_repository_config(text)[0].config.name == "a<b>&c"


def test_parse_config_response_example():
    response = parse_config_response(EXAMPLE_STATUS)
    assert list(response) == ["mnist"]
    status = response["mnist"].model_version_status[0]
    assert status == OvmsModelVersionStatus(
        version="3", state="AVAILABLE", status=OvmsModelStatus("OK", "OK")
    )


def test_config_response_round_trip_with_trailing_newline():
    original = {
        "openvino-ir": OvmsModelStatusResponse(
            [OvmsModelVersionStatus(state="LOADING", status=OvmsModelStatus(error_message="Test model load failure"))]
        )
    }
    text = json.dumps({key: value.to_dict() for key, value in original.items()}) + "\n"
    assert parse_config_response(text) == original


def test_missing_fields_take_empty_values():
    response = parse_config_response('{"m": {"model_version_status": [{"state": "END"}]}}')
    status = response["m"].model_version_status[0]
    assert status.version == ""
    assert status.status == OvmsModelStatus()


def test_null_documents_are_empty():
    assert parse_config_response("null") == {}
    assert parse_repository_config("null") == []
    assert parse_error_response("null") == ""


def test_parse_error_response():
    assert parse_error_response('{"error": "Reloading models versions failed"}') == (
        "Reloading models versions failed"
    )


@pytest.mark.parametrize(
    "parse, text",
    [
        (parse_config_response, "not json"),
        (parse_config_response, "[]"),
        (parse_config_response, '{"m": {"model_version_status": 3}}'),
        (parse_repository_config, '{"model_config_list": [{"config": {"name": 5}}]}'),
        (parse_error_response, '{"error": 1}'),
        (parse_error_response, "NaN"),
    ],
)
def test_invalid_documents_raise(parse, text):
    with pytest.raises(ValueError):
        parse(text)