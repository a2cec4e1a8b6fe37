from __future__ import annotations

import pytest

from piper.commands import python_build_metadata
from piper.errors import ErrorCategory, ValidationError
from piper.metadata import ParameterDependence, StepData, StepInputs, StepMetadata, StepParameters, StepSpec
from piper.validation import missing_value, validate_step_config


def _metadata(*params: StepParameters) -> StepData:
    return StepData(metadata=StepMetadata(name="demo"), spec=StepSpec(inputs=StepInputs(parameters=list(params))))


def test_missing_value() -> None:
    assert missing_value(None)
    assert missing_value("")
    assert missing_value([])
    assert not missing_value(False)
    assert not missing_value("x")


def test_default_python_build_config_is_valid() -> None:
    values = {param.name: param.default for param in python_build_metadata().parameters}
    validate_step_config(python_build_metadata(), values)


def test_problems_are_collected() -> None:
    metadata = _metadata(
        StepParameters(name="url", mandatory=True),
        StepParameters(name="publish", type="bool"),
        StepParameters(name="user", mandatory_if=[ParameterDependence(name="publish", value="true")]),
        StepParameters(name="tool", possible_values=["pip", "poetry"]),
    )

    with pytest.raises(ValidationError) as excinfo:
        validate_step_config(metadata, {"publish": True, "tool": "npm"})

    problems = excinfo.value.problems
    assert len(problems) == 3
    assert "the mandatory parameter 'url' is not set" in problems
    assert any("'user' is mandatory when 'publish' is 'true'" in p for p in problems)
    assert any("'npm'" in p for p in problems)
    assert excinfo.value.category is ErrorCategory.CONFIGURATION


def test_mandatory_if_not_triggered() -> None:
    metadata = _metadata(
        StepParameters(name="publish", type="bool"),
        StepParameters(name="user", mandatory_if=[ParameterDependence(name="publish", value="true")]),
    )
    validate_step_config(metadata, {"publish": False})


def test_possible_values_for_lists() -> None:
    metadata = _metadata(StepParameters(name="modes", type="[]string", possible_values=["a", "b"]))
    validate_step_config(metadata, {"modes": ["a", "b"]})
    with pytest.raises(ValidationError):
        validate_step_config(metadata, {"modes": ["a", "c"]})
