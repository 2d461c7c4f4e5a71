import json

import pytest

from meshadapter.modelschema import (
    Datatype,
    ModelSchema,
    ModelSchemaError,
    TensorMetadata,
    load_schema,
)

SIMPLE_SCHEMA = {
    "inputs": [{"name": "INPUT", "datatype": "FP32", "shape": [1, 784]}],
    "outputs": [{"name": "OUTPUT", "datatype": "INT64", "shape": [1]}],
}


def _write(tmp_path, content):
    path = tmp_path / "_schema.json"
    path.write_text(content)
    return str(path)


def test_load_simple_schema(tmp_path):
    schema = load_schema(_write(tmp_path, json.dumps(SIMPLE_SCHEMA)))
    assert schema.inputs == [TensorMetadata("INPUT", "FP32", [1, 784])]
    assert schema.outputs == [TensorMetadata("OUTPUT", "INT64", [1])]


def test_load_outputs_only(tmp_path):
    data = {"outputs": [{"name": "NEW_OUTPUT", "datatype": "FP32", "shape": [1, 1]}]}
    schema = load_schema(_write(tmp_path, json.dumps(data)))
    assert schema.inputs is None
    assert schema.outputs[0].name == "NEW_OUTPUT"
    assert schema.outputs[0].datatype == Datatype.FP32


def test_round_trip(tmp_path):
    schema = load_schema(_write(tmp_path, json.dumps(SIMPLE_SCHEMA)))
    assert schema.to_dict() == SIMPLE_SCHEMA
    assert ModelSchema.from_dict(schema.to_dict()) == schema


def test_empty_lists_are_omitted():
    assert ModelSchema(inputs=[], outputs=None).to_dict() == {}


def test_missing_shape_is_none():
    tensor = TensorMetadata.from_dict({"name": "x", "datatype": "BYTES"})
    assert tensor.shape is None
    assert tensor.to_dict()["shape"] is None


def test_missing_file(tmp_path):
    with pytest.raises(ModelSchemaError, match="Unable to read model schema file"):
        load_schema(str(tmp_path / "nope.json"))


@pytest.mark.parametrize(
    "content",
    [
        "not json",
        "[1, 2]",
        '{"inputs": 3}',
        '{"inputs": [{"name": 5}]}',
        '{"inputs": [{"shape": [1.5]}]}',
    ],
)
def test_invalid_json(tmp_path, content):
    with pytest.raises(ModelSchemaError, match="Unable to parse model schema JSON"):
        load_schema(_write(tmp_path, content))