from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional

from qrestrict.graph.ir import OperatorIR
from qrestrict.utils.enums import OperationType, to_operation_type


class QuantParamsRestrictionError(ValueError):
    def __init__(
        self,
        *,
        reason_code: str,
        message: str,
        operator_name: str,
        op_type: str,
    ) -> None:
        super().__init__(message)
        self.reason_code = str(reason_code)
        self.operator_name = str(operator_name)
        self.op_type = str(op_type)
        self.message = str(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operator_name": self.operator_name,
            "op_type": self.op_type,
            "reason_code": self.reason_code,
            "message": self.message,
        }


class RestrictionPolicy(str, Enum):
    RESCALE_BIAS = "rescale_bias"
    ALIGN_INPUTS_EXCEPT_LAST = "align_inputs_except_last"
    ALIGN_FIRST_INPUT = "align_first_input"
    ALIGN_OUTPUTS = "align_outputs"
    NONE = "none"


@dataclass(frozen=True)
class ValidationSpec:
    min_inputs: int = 0
    max_inputs: Optional[int] = None
    min_outputs: int = 1
    max_outputs: Optional[int] = 1


@dataclass(frozen=True)
class PolicyEntry:
    op_type: OperationType
    policy: RestrictionPolicy
    validation: ValidationSpec = field(default_factory=ValidationSpec)


def _operator_name(operator: OperatorIR) -> str:
    return operator.name if operator.name else str(operator.op_type)


def _validate_counts(operator: OperatorIR, spec: ValidationSpec) -> None:
    input_count = len(operator.inputs)
    output_count = len(operator.outputs)
    if input_count < int(spec.min_inputs):
        raise QuantParamsRestrictionError(
            reason_code="invalid_input_count",
            message=f"input_count={input_count} is smaller than min_inputs={spec.min_inputs}",
            operator_name=_operator_name(operator),
            op_type=operator.op_type,
        )
    if spec.max_inputs is not None and input_count > int(spec.max_inputs):
        raise QuantParamsRestrictionError(
            reason_code="invalid_input_count",
            message=f"input_count={input_count} exceeds max_inputs={spec.max_inputs}",
            operator_name=_operator_name(operator),
            op_type=operator.op_type,
        )
    if output_count < int(spec.min_outputs):
        raise QuantParamsRestrictionError(
            reason_code="invalid_output_count",
            message=f"output_count={output_count} is smaller than min_outputs={spec.min_outputs}",
            operator_name=_operator_name(operator),
            op_type=operator.op_type,
        )
    if spec.max_outputs is not None and output_count > int(spec.max_outputs):
        raise QuantParamsRestrictionError(
            reason_code="invalid_output_count",
            message=f"output_count={output_count} exceeds max_outputs={spec.max_outputs}",
            operator_name=_operator_name(operator),
            op_type=operator.op_type,
        )


def _entries(
    op_types: List[OperationType],
    policy: RestrictionPolicy,
    validation: ValidationSpec,
) -> Dict[OperationType, PolicyEntry]:
    return {
        op_type: PolicyEntry(op_type=op_type, policy=policy, validation=validation)
        for op_type in op_types
    }


_POLICY_REGISTRY: Dict[OperationType, PolicyEntry] = {
    **_entries(
        [
            OperationType.CONV_2D,
            OperationType.FULLY_CONNECTED,
        ],
        RestrictionPolicy.RESCALE_BIAS,
        # input, weight, bias, then attribute operands
        ValidationSpec(min_inputs=3, min_outputs=1, max_outputs=None),
    ),
    **_entries(
        [
            OperationType.CONCAT,
        ],
        RestrictionPolicy.ALIGN_INPUTS_EXCEPT_LAST,
        # values, then the axis operand; fewer than two inputs aligns nothing
        ValidationSpec(min_inputs=0, min_outputs=1, max_outputs=None),
    ),
    **_entries(
        [
            OperationType.FLATTEN,
            OperationType.RELU,
            OperationType.RESHAPE,
            OperationType.TRANSPOSE,
            OperationType.UNSQUEEZE,
        ],
        RestrictionPolicy.ALIGN_FIRST_INPUT,
        ValidationSpec(min_inputs=1, min_outputs=1, max_outputs=None),
    ),
    **_entries(
        [
            OperationType.SPLIT,
        ],
        RestrictionPolicy.ALIGN_OUTPUTS,
        ValidationSpec(min_inputs=1, min_outputs=1, max_outputs=None),
    ),
    **_entries(
        [
            OperationType.ADD,
            OperationType.AVERAGE_POOL_2D,
            OperationType.CONV_2D_TRANSPOSE,
            OperationType.DIV,
            OperationType.MAT_MUL,
            OperationType.HARD_SIGMOID,
            OperationType.HARD_SWISH,
            OperationType.MAX_POOL_2D,
            OperationType.MUL,
            OperationType.RELU6,
            OperationType.SIGMOID,
            OperationType.SOFTMAX,
            OperationType.SUB,
            OperationType.TANH,
            OperationType.REQUANTIZE,
        ],
        RestrictionPolicy.NONE,
        ValidationSpec(min_inputs=0, max_inputs=None, min_outputs=0, max_outputs=None),
    ),
}


def get_policy_registry() -> Dict[OperationType, PolicyEntry]:
    return dict(_POLICY_REGISTRY)


def get_policy_entry(op_type: Any) -> Optional[PolicyEntry]:
    known = to_operation_type(op_type)
    if known is None:
        return None
    return _POLICY_REGISTRY.get(known, None)


def get_supported_operation_types() -> List[str]:
    return sorted(op_type.value for op_type in _POLICY_REGISTRY.keys())


def resolve_operator_policy(operator: OperatorIR) -> PolicyEntry:
    entry = get_policy_entry(operator.op_type)
    if entry is None:
        raise QuantParamsRestrictionError(
            reason_code="missing_restriction_policy",
            message=(
                f"Missing the processing of {operator.op_type} for applying the "
                f"constraints to quantization parameters."
            ),
            operator_name=_operator_name(operator),
            op_type=operator.op_type,
        )
    _validate_counts(operator, entry.validation)
    return entry


def check_policy_registry(handlers: Mapping[RestrictionPolicy, Callable[..., Any]]) -> None:
    """Fail at import time when a policy or a registry entry has no handler."""
    for op_type, entry in _POLICY_REGISTRY.items():
        if not isinstance(op_type, OperationType) or entry.op_type != op_type:
            raise TypeError(f"Policy registry key does not match its entry: {op_type}")
    missing_policies = [
        policy.value
        for policy in RestrictionPolicy
        if policy not in handlers or not callable(handlers[policy])
    ]
    if len(missing_policies) > 0:
        raise NotImplementedError(
            f"Restriction policies without a handler: {missing_policies}"
        )
